"""
Pytest configuration and shared fixtures.
"""

import pytest
from typing import Callable, Dict, List, Optional, Union
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.settings import Settings
from domain.schemas import Chunk
from infra.db.session import init_db
from infra.llm.retry import RetryExecutor
from infra.pdf.parser import PdfText
from infra.rag.embeddings import hash_embedding
from infra.rag.vector_store import CorpusStore
from infra.repositories.documents_repository import DocumentsRepository
from infra.repositories.jobs_repository import JobsRepository


VALID_CV_JSON = """{
  "technical_skills": {"score": 5, "feedback": "Strong backend and cloud exposure"},
  "experience_level": {"score": 4, "feedback": "Five years of production work"},
  "relevant_achievements": {"score": 4, "feedback": "Scaled an API to 10k rps"},
  "cultural_fit": {"score": 3, "feedback": "Some collaboration signals"},
  "overall_summary": "Strong backend candidate. Limited leadership evidence."
}"""

VALID_PROJECT_JSON = """{
  "correctness": {"score": 4, "feedback": "RAG context injected correctly"},
  "code_quality": {"score": 4, "feedback": "Modular services"},
  "resilience": {"score": 3, "feedback": "Retries present, no timeouts"},
  "documentation": {"score": 3, "feedback": "README covers setup"},
  "creativity": {"score": 2, "feedback": "Few extras"},
  "overall_summary": "Solid implementation with room for resilience work."
}"""


async def no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def session_factory(tmp_path):
    """SQLite store in a temp directory with the schema created."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'test.sqlite3'}",
        future=True,
        connect_args={"check_same_thread": False},
    )
    init_db(bind=engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    engine.dispose()


@pytest.fixture
def jobs_repo(session_factory) -> JobsRepository:
    return JobsRepository(session_factory)


@pytest.fixture
def docs_repo(session_factory) -> DocumentsRepository:
    return DocumentsRepository(session_factory)


@pytest.fixture
def store_path(tmp_path) -> str:
    return str(tmp_path / "data" / "vector_store.json")


@pytest.fixture
def mock_settings(store_path) -> Settings:
    """Provider-unavailable configuration: every LLM call is mocked."""
    return Settings(
        OPENAI_API_KEY=None,
        OPENROUTER_API_KEY=None,
        AI_FORCE_MOCK=True,
        AI_FALLBACK_TO_MOCK=False,
        AI_AUTO_BOTH_FAIL_FALLBACK=False,
        AI_RETRY_ATTEMPTS=2,
        AI_RETRY_BASE_DELAY_MS=1,
        VECTOR_STORE_PATH=store_path,
        RAG_TOP_K=3,
        MAX_CONCURRENT_JOBS=2,
    )


@pytest.fixture
def live_settings(store_path) -> Settings:
    """A configuration that believes a provider is reachable."""
    return Settings(
        OPENAI_API_KEY="sk-test",
        OPENROUTER_API_KEY=None,
        AI_FORCE_MOCK=False,
        AI_FALLBACK_TO_MOCK=False,
        AI_AUTO_BOTH_FAIL_FALLBACK=False,
        AI_RETRY_ATTEMPTS=2,
        AI_RETRY_BASE_DELAY_MS=1,
        VECTOR_STORE_PATH=store_path,
        RAG_TOP_K=3,
    )


@pytest.fixture
def corpus_store(store_path) -> CorpusStore:
    return CorpusStore(store_path)


@pytest.fixture
def make_chunks() -> Callable[..., List[Chunk]]:
    """Build hash-embedded chunks from (text, tags) pairs."""
    def _make(items, dim: int = 256) -> List[Chunk]:
        return [
            Chunk(id=f"chunk-{i}", text=text, embedding=hash_embedding(text, dim).tolist(), tags=list(tags))
            for i, (text, tags) in enumerate(items)
        ]
    return _make


@pytest.fixture
def fast_executor() -> RetryExecutor:
    return RetryExecutor(2, 1, sleep=no_sleep)


class FakeLLMClient:
    """Stands in for LLMClient; routes prompts by the section headers they carry."""

    provider = "fake"

    def __init__(self, cfg: Settings, responses: Dict[str, Union[str, Exception, List]]):
        self.cfg = cfg
        self.responses = responses
        self.calls: List[str] = []

    @property
    def available(self) -> bool:
        return not self.cfg.mock_mode

    @staticmethod
    def route(prompt: str) -> str:
        if "CV CONTENT:" in prompt:
            return "cv"
        if "PROJECT REPORT:" in prompt:
            return "project"
        return "summary"

    async def complete(self, prompt: str, *, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        kind = self.route(prompt)
        self.calls.append(kind)
        response = self.responses[kind]
        if isinstance(response, list):
            response = response.pop(0) if len(response) > 1 else response[0]
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def fake_llm() -> Callable[..., FakeLLMClient]:
    def _make(cfg: Settings, **responses) -> FakeLLMClient:
        return FakeLLMClient(cfg, responses)
    return _make


@pytest.fixture
def fake_extractor() -> Callable[[str], PdfText]:
    def _extract(path: str) -> PdfText:
        text = f"Extracted text of {path}. Backend APIs, databases and cloud deployment."
        return PdfText(text=text, page_count=1, word_count=len(text.split()))
    return _extract
