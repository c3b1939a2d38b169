import os
from pydantic import BaseModel
from functools import lru_cache
from dotenv import load_dotenv
load_dotenv()


def _flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes"}


class Settings(BaseModel):
    APP_NAME: str = os.getenv("APP_NAME", "AI CV & Project Evaluator")
    ENV: str = os.getenv("ENV", "development")
    STORAGE_DIR: str = os.getenv("STORAGE_DIR", "storage")
    MAX_FILE_SIZE: int = int(os.getenv("MAX_FILE_SIZE", str(10 * 1024 * 1024)))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    EVAL_DEBUG_LOG: str | None = os.getenv("EVAL_DEBUG_LOG") or None
    SQLITE_PATH: str = os.getenv("SQLITE_PATH", "app.sqlite3")
    VECTOR_STORE_PATH: str = os.getenv("VECTOR_STORE_PATH", "data/vector_store.json")
    OPENAI_API_KEY: str | None = os.getenv("OPENAI_API_KEY") or None
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-4o-mini")
    OPENAI_EMBEDDING_MODEL: str = os.getenv("OPENAI_EMBEDDING_MODEL", "text-embedding-3-small")
    OPENROUTER_API_KEY: str | None = os.getenv("OPENROUTER_API_KEY") or None
    OPENROUTER_MODEL: str = os.getenv("OPENROUTER_MODEL", "openai/gpt-4o-mini")
    LLM_TIMEOUT_S: float = float(os.getenv("LLM_TIMEOUT_S", "60"))

    AI_FORCE_MOCK: bool = _flag("AI_FORCE_MOCK")
    AI_FALLBACK_TO_MOCK: bool = _flag("AI_FALLBACK_TO_MOCK")
    AI_AUTO_BOTH_FAIL_FALLBACK: bool = _flag("AI_AUTO_BOTH_FAIL_FALLBACK")
    AI_RETRY_ATTEMPTS: int = int(os.getenv("AI_RETRY_ATTEMPTS", "2"))
    AI_RETRY_BASE_DELAY_MS: int = int(os.getenv("AI_RETRY_BASE_DELAY_MS", "1200"))
    AI_CV_MAX_CHARS: int = int(os.getenv("AI_CV_MAX_CHARS", "20000"))
    AI_PROJECT_MAX_CHARS: int = int(os.getenv("AI_PROJECT_MAX_CHARS", "22000"))

    RAG_TOP_K: int = int(os.getenv("RAG_TOP_K", "3"))
    EMBEDDING_DIM: int = int(os.getenv("EMBEDDING_DIM", "256"))
    MAX_CONCURRENT_JOBS: int = int(os.getenv("MAX_CONCURRENT_JOBS", "2"))
    DEFAULT_JOB_TITLE: str = os.getenv("DEFAULT_JOB_TITLE", "Backend Engineer")

    @property
    def mock_mode(self) -> bool:
        # no provider key means there is nothing to call
        return self.AI_FORCE_MOCK or not (self.OPENAI_API_KEY or self.OPENROUTER_API_KEY)


@lru_cache
def get_settings() -> Settings:
    return Settings()

settings = get_settings()
