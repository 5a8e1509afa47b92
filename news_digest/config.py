import os
from typing import List, Optional
from pydantic import BaseModel
from dotenv import load_dotenv

# Load the .env file
load_dotenv()


def _split_csv(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseModel):
    # Application settings
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "Asia/Kuala_Lumpur"

    # News source
    SOURCE_URL: str = "https://www.freemalaysiatoday.com"
    DOMESTIC_SECTION: str = "/category/nation/"
    INTERNATIONAL_SECTION: str = "/category/world/"
    MEDIA_PATH: str = "/wp-content/uploads/"
    NEWS_LIMIT: int = 10
    RETENTION_HOURS: int = 6
    ARTICLE_TIMEOUT: float = 10.0
    RELEVANCE_KEYWORDS: List[str] = [
        "malaysia", "parliament", "government", "minister", "election",
        "economy", "ringgit", "court", "police", "anwar",
    ]

    # LLM configuration (openai or ollama)
    LLM_PROVIDER: str = "openai"
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o"
    OLLAMA_BASE_URL: str = "http://localhost:11434"
    OLLAMA_MODEL: str = "llama3.1:8b"

    # SMTP
    SMTP_HOST: str = "smtp.gmail.com"
    SMTP_PORT: int = 587
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_USE_TLS: bool = True
    EMAIL_FROM: str = "fmt-digest@example.com"

    # Rate limits (HTTP and AI per hour, email per 24 hours)
    HTTP_RATE_LIMIT: int = 100
    AI_RATE_LIMIT: int = 10
    EMAIL_RATE_LIMIT: int = 100

    # Storage, empty means in-process memory
    DATABASE_URL: str = ""

    # Schedule defaults
    DEFAULT_RECIPIENTS: List[str] = ["admin@example.com"]
    DEFAULT_INTERVAL_HOURS: int = 3

    # API / CLI
    API_HOST: str = "0.0.0.0"
    API_PORT: int = 8000
    API_URL: str = "http://localhost:8000"

    class Config:
        env_file = ".env"
        case_sensitive = True


# Load settings from environment variables
settings = Settings(
    LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    TIMEZONE=os.getenv("TIMEZONE", "Asia/Kuala_Lumpur"),
    SOURCE_URL=os.getenv("SOURCE_URL", "https://www.freemalaysiatoday.com"),
    DOMESTIC_SECTION=os.getenv("DOMESTIC_SECTION", "/category/nation/"),
    INTERNATIONAL_SECTION=os.getenv("INTERNATIONAL_SECTION", "/category/world/"),
    MEDIA_PATH=os.getenv("MEDIA_PATH", "/wp-content/uploads/"),
    NEWS_LIMIT=int(os.getenv("NEWS_LIMIT", "10")),
    RETENTION_HOURS=int(os.getenv("RETENTION_HOURS", "6")),
    ARTICLE_TIMEOUT=float(os.getenv("ARTICLE_TIMEOUT", "10")),
    RELEVANCE_KEYWORDS=_split_csv(os.getenv(
        "RELEVANCE_KEYWORDS",
        "malaysia,parliament,government,minister,election,economy,ringgit,court,police,anwar",
    )),
    LLM_PROVIDER=os.getenv("LLM_PROVIDER", "openai"),
    OPENAI_API_KEY=os.getenv("OPENAI_API_KEY"),
    OPENAI_MODEL=os.getenv("OPENAI_MODEL", "gpt-4o"),
    OLLAMA_BASE_URL=os.getenv("OLLAMA_BASE_URL", "http://localhost:11434"),
    OLLAMA_MODEL=os.getenv("OLLAMA_MODEL", "llama3.1:8b"),
    SMTP_HOST=os.getenv("SMTP_HOST", "smtp.gmail.com"),
    SMTP_PORT=int(os.getenv("SMTP_PORT", "587")),
    SMTP_USER=os.getenv("SMTP_USER"),
    SMTP_PASSWORD=os.getenv("SMTP_PASSWORD"),
    SMTP_USE_TLS=os.getenv("SMTP_USE_TLS", "true").lower() == "true",
    EMAIL_FROM=os.getenv("EMAIL_FROM") or os.getenv("SMTP_USER") or "fmt-digest@example.com",
    HTTP_RATE_LIMIT=int(os.getenv("HTTP_RATE_LIMIT", "100")),
    AI_RATE_LIMIT=int(os.getenv("AI_RATE_LIMIT", "10")),
    EMAIL_RATE_LIMIT=int(os.getenv("EMAIL_RATE_LIMIT", "100")),
    DATABASE_URL=os.getenv("DATABASE_URL", ""),
    DEFAULT_RECIPIENTS=_split_csv(os.getenv("DEFAULT_RECIPIENTS", "admin@example.com")),
    DEFAULT_INTERVAL_HOURS=int(os.getenv("DEFAULT_INTERVAL_HOURS", "3")),
    API_HOST=os.getenv("API_HOST", "0.0.0.0"),
    API_PORT=int(os.getenv("API_PORT", "8000")),
    API_URL=os.getenv("API_URL", "http://localhost:8000"),
)
