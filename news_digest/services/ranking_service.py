import logging
from typing import Iterable, List, Optional, Sequence
from news_digest.schemas import Article

logger = logging.getLogger(__name__)

DEFAULT_LOCALE_TERMS = ("malaysia", "malaysian")
LOCALE_BONUS = 10


class RelevanceRanker:
    """Scores articles by keyword occurrences, with a bonus for local stories"""

    def __init__(self, keywords: Iterable[str], locale_terms: Sequence[str] = DEFAULT_LOCALE_TERMS,
                 locale_bonus: int = LOCALE_BONUS):
        self.keywords = [k.lower() for k in keywords if k]
        self.locale_terms = [t.lower() for t in locale_terms]
        self.locale_bonus = locale_bonus

    def score(self, article: Article, keywords: Optional[Iterable[str]] = None) -> int:
        keywords = self.keywords if keywords is None else [k.lower() for k in keywords if k]
        text = f"{article.title} {article.content}".lower()

        score = sum(text.count(keyword) for keyword in keywords)
        if any(term in text for term in self.locale_terms):
            score += self.locale_bonus
        return score

    def rank(self, articles: Sequence[Article], keywords: Optional[Iterable[str]] = None) -> List[Article]:
        """Articles by descending score; equal scores keep their original order"""
        keywords = None if keywords is None else list(keywords)
        ranked = sorted(articles, key=lambda article: self.score(article, keywords), reverse=True)
        if ranked:
            logger.debug(f"Top story: {ranked[0].title!r} (score {self.score(ranked[0], keywords)})")
        return ranked

    def top_story(self, articles: Sequence[Article]) -> Optional[Article]:
        ranked = self.rank(articles)
        return ranked[0] if ranked else None
