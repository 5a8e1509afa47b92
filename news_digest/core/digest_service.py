import logging
from typing import List

from news_digest.core.exceptions import EmailServiceError, FetchError
from news_digest.schemas import RunSummary, SendResult, utcnow
from news_digest.services.digest_composer import DigestComposer
from news_digest.services.email_service import EmailService
from news_digest.services.news_service import NewsService
from news_digest.services.ranking_service import RelevanceRanker
from news_digest.storage.base import LAST_DIGEST_TIME, Storage

logger = logging.getLogger(__name__)


class DigestService:
    """Fetch, rank, summarize, persist and mail one digest"""

    def __init__(self, news_service: NewsService, ranker: RelevanceRanker, composer: DigestComposer,
                 email_service: EmailService, storage: Storage, news_limit: int = 10):
        self.news_service = news_service
        self.ranker = ranker
        self.composer = composer
        self.email_service = email_service
        self.storage = storage
        self.news_limit = news_limit

    def _log(self, type: str, message: str, **details) -> None:
        self.storage.create_system_log(type, message, details or None)
        log = logger.error if type == "error" else logger.warning if type == "warning" else logger.info
        log(message)

    async def run(self) -> RunSummary:
        """
        Run the pipeline once.

        Returns:
            RunSummary with per-recipient counts

        Raises:
            FetchError: No articles could be fetched
            SummarizationError: The model failed or returned an unusable answer
            EmailServiceError: No recipients or the mail server is unreachable
        """
        self._log("info", "Starting digest generation")
        self._log("info", "Fetching news articles", limit=self.news_limit)

        batch = await self.news_service.fetch_latest_news(self.news_limit)
        if not batch.articles:
            raise FetchError("No articles fetched")
        self._log("info", f"Fetched {len(batch.articles)} articles", article_count=len(batch.articles))

        ranked = self.ranker.rank(batch.articles)
        self._log("info", "Starting AI digest generation", top_story=ranked[0].title)
        draft = await self.composer.generate_digest(ranked)
        self._log("info", f"Generated digest '{draft.title}' ({draft.word_count} words)",
                  word_count=draft.word_count)

        digest = self.storage.create_digest(
            title=draft.title,
            content=draft.content,
            word_count=draft.word_count,
            articles=ranked,
            status="generated",
        )
        self._log("info", "Digest saved", digest_id=digest.id)

        recipients = self.storage.get_recipients()
        if not recipients:
            self.storage.update_digest_status(digest.id, "failed")
            raise EmailServiceError("No email recipients configured")

        self._log("info", f"Sending digest to {len(recipients)} recipient(s)", digest_id=digest.id)
        try:
            results = await self.email_service.send_digest(digest, recipients, lead_image=batch.lead_image)
        except EmailServiceError:
            self.storage.update_digest_status(digest.id, "failed")
            raise

        self._record_email_logs(digest.id, self.email_service.subject_for(digest), recipients, results)

        success_count = sum(1 for r in results if r.success)
        failed_count = len(results) - success_count
        status = "sent" if success_count > 0 else "failed"
        self.storage.update_digest_status(digest.id, status)
        self.storage.set_setting(LAST_DIGEST_TIME, utcnow().isoformat())

        self._log(
            "info" if status == "sent" else "warning",
            f"Digest {status}: {success_count}/{len(recipients)} emails delivered",
            digest_id=digest.id,
            total_recipients=len(recipients),
            success_count=success_count,
            failed_count=failed_count,
        )

        return RunSummary(
            digest_id=digest.id,
            status=status,
            total_recipients=len(recipients),
            success_count=success_count,
            failed_count=failed_count,
        )

    def _record_email_logs(self, digest_id: str, subject: str, recipients: List[str],
                           results: List[SendResult]) -> None:
        for recipient, result in zip(recipients, results):
            if result.success:
                self.storage.create_email_log(digest_id, recipient, subject, "sent", sent_at=utcnow())
            else:
                self.storage.create_email_log(digest_id, recipient, subject, "failed", error=result.error)
