from pydantic_settings import BaseSettings
from functools import lru_cache


class Settings(BaseSettings):
    # core
    ENV: str = "dev"
    API_PREFIX: str = "/api"

    # database & redis
    DATABASE_URL: str = "sqlite:///./company_db.sqlite3"
    # Keep this as a plain string so redis:// URLs are always accepted
    REDIS_URL: str = "redis://localhost:6379/0"

    # llm
    OPENROUTER_API_KEY: str | None = None
    OPENAI_API_KEY: str | None = None
    LLM_MODEL: str = "gpt-4o"
    LLM_TEMPERATURE: float = 0.0
    LLM_TIMEOUT_SECONDS: float = 60.0
    # Hard cap on concurrent LLM calls per process
    LLM_MAX_CONCURRENCY: int = 4
    LLM_PRICEBOOK_JSON: str | None = None
    # Identical classification calls are served from Redis when set
    CLASSIFIER_CACHE_TTL_SECONDS: int | None = None

    # document source
    GOOGLE_ACCESS_TOKEN: str | None = None
    GOOGLE_DOCS_EXPORT_URL: str = (
        "https://docs.google.com/document/d/{doc_id}/export?format=txt"
    )
    DOC_URL_TEMPLATE: str = "https://docs.google.com/document/d/{doc_id}"
    DOCUMENT_TIMEOUT_SECONDS: int = 20
    # Used instead of Google Docs when set (one <doc_id>.txt file per note)
    NOTES_DIR: str | None = None

    # pipeline
    PIPELINE_CONCURRENT_STAGES: bool = True
    MAX_DOCUMENT_TOKENS: int = 12000
    # Monthly burn recorded for notes that only say "low burn"
    LOW_BURN_SENTINEL: float = 50000.0

    # auth / security
    API_AUTH_KEY: str | None = None
    FRONTEND_ORIGIN: str | None = None
    # Explicit debug-only switch for wide-open CORS in non-prod envs
    CORS_ALLOW_ALL_ORIGINS: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


@lru_cache
def get_settings() -> Settings:
    return Settings()
