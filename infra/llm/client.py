import logging
import time
from functools import lru_cache
from typing import Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel, ValidationError

from app.settings import Settings, settings
from domain.errors import ErrorCategory, ExtractionError, RemoteCallError
from domain.schemas import CVEvaluation, ProjectEvaluation
from infra.llm.json_extract import parse_llm_json
from infra.llm.prompts import (
    CV_EVAL_PROMPT,
    FINAL_SUMMARY_PROMPT,
    PROJECT_EVAL_PROMPT,
    format_refs,
)
from infra.llm.retry import RetryExecutor, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)

OPENAI_CHAT_URL = "https://api.openai.com/v1/chat/completions"
OPENROUTER_CHAT_URL = "https://openrouter.ai/api/v1/chat/completions"


def _category_for_status(response: httpx.Response) -> Optional[ErrorCategory]:
    status = response.status_code
    if status == 429:
        body = response.text.lower()
        if "quota" in body:
            return ErrorCategory.QUOTA_EXCEEDED
        return ErrorCategory.RATE_LIMIT
    if status in {408, 504}:
        return ErrorCategory.TIMEOUT
    return None


class LLMClient:
    """Chat-completion transport for OpenAI, or OpenRouter when only its key is set."""

    def __init__(self, cfg: Settings = settings):
        self.cfg = cfg

    @property
    def available(self) -> bool:
        return not self.cfg.mock_mode

    @property
    def provider(self) -> str:
        if not self.available:
            return "mock"
        return "openai" if self.cfg.OPENAI_API_KEY else "openrouter"

    async def _post(self, url: str, headers: Dict[str, str], payload: Dict) -> Dict:
        try:
            async with httpx.AsyncClient(timeout=self.cfg.LLM_TIMEOUT_S) as client:
                response = await client.post(url, headers=headers, json=payload)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise RemoteCallError(f"LLM request timeout: {exc}", category=ErrorCategory.TIMEOUT) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise RemoteCallError(
                f"LLM provider returned HTTP {status}: {exc.response.text[:300]}",
                category=_category_for_status(exc.response),
            ) from exc
        except httpx.RequestError as exc:
            raise RemoteCallError(f"LLM network error: {exc}", category=ErrorCategory.NETWORK) from exc

    async def complete(self, prompt: str, *, temperature: float = 0.3, max_tokens: int = 1000) -> str:
        if not self.available:
            raise RemoteCallError("No LLM provider configured")
        messages = [{"role": "user", "content": prompt}]
        if self.cfg.OPENAI_API_KEY:
            url = OPENAI_CHAT_URL
            headers = {"Authorization": f"Bearer {self.cfg.OPENAI_API_KEY}"}
            model = self.cfg.OPENAI_MODEL
        else:
            url = OPENROUTER_CHAT_URL
            headers = {
                "Authorization": f"Bearer {self.cfg.OPENROUTER_API_KEY}",
                "HTTP-Referer": "http://localhost",
                "X-Title": self.cfg.APP_NAME,
            }
            model = self.cfg.OPENROUTER_MODEL
        payload = {"model": model, "messages": messages,
                   "temperature": temperature, "max_tokens": max_tokens}
        data = await self._post(url, headers, payload)
        try:
            return data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as exc:
            raise RemoteCallError(f"Unexpected completion payload: {exc!r}") from exc


@lru_cache
def get_llm_client() -> LLMClient:
    return LLMClient()


def truncate_text(text: str, max_chars: int = 24000) -> str:
    """Keep the head and tail of very long documents so prompts stay in budget."""
    if not text:
        return ""
    if len(text) <= max_chars:
        return text
    head = text[: int(max_chars * 0.6)]
    tail = text[-int(max_chars * 0.2):]
    dropped = len(text) - (len(head) + len(tail))
    return f"{head}\n\n[...TRUNCATED {dropped} CHARS...]\n\n{tail}"


def _validate_llm_response(raw_text: str, model: Type[T]) -> T:
    data = parse_llm_json(raw_text)
    if not isinstance(data, dict):
        raise ExtractionError(f"LLM response was {type(data).__name__}, expected an object")
    try:
        return model.model_validate(data)
    except ValidationError as exc:
        raise ExtractionError(f"LLM response failed validation: {exc}") from exc


def _criteria(scores: Dict[str, int], note: str) -> Dict[str, Dict]:
    return {name: {"score": score, "feedback": note} for name, score in scores.items()}


MOCK_CV = {
    "technical_skills": {"score": 4, "feedback": "Mock: solid backend & APIs"},
    "experience_level": {"score": 3, "feedback": "Mock: mid-level experience"},
    "relevant_achievements": {"score": 3, "feedback": "Mock: some project impact"},
    "cultural_fit": {"score": 4, "feedback": "Mock: good collaboration signals"},
    "overall_summary": "Mock summary: Candidate shows balanced strengths with growth areas in scaling and advanced architecture.",
}

MOCK_PROJECT = {
    "correctness": {"score": 4, "feedback": "Mock: core logic implemented"},
    "code_quality": {"score": 3, "feedback": "Mock: structure ok, tests missing"},
    "resilience": {"score": 3, "feedback": "Mock: basic error handling present"},
    "documentation": {"score": 3, "feedback": "Mock: README adequate"},
    "creativity": {"score": 2, "feedback": "Mock: few extras"},
    "overall_summary": "Mock project summary: Solid foundation that could enhance resilience and creativity.",
}

FALLBACK_CV = {
    **_criteria({"technical_skills": 3, "experience_level": 3,
                 "relevant_achievements": 3, "cultural_fit": 3},
                "Fallback mock: neutral estimate"),
    "overall_summary": "Fallback mock summary due to AI error.",
}

FALLBACK_PROJECT = {
    **_criteria({"correctness": 3, "code_quality": 3, "resilience": 3,
                 "documentation": 3}, "Fallback mock: neutral estimate"),
    "creativity": {"score": 2, "feedback": "Fallback mock: limited extras"},
    "overall_summary": "Fallback mock project summary due to AI error.",
}


async def _evaluate(
    kind: str,
    prompt: str,
    model: Type[T],
    mock: Dict,
    fallback: Dict,
    truncated: bool,
    *,
    client: LLMClient,
    executor: RetryExecutor,
) -> Dict:
    start = time.perf_counter()
    if not client.available:
        meta = {"mode": "mock", "truncated": truncated,
                "duration_ms": round((time.perf_counter() - start) * 1000)}
        return model.model_validate({**mock, "meta": meta}).model_dump()
    try:
        logger.info("[%s] calling %s, prompt chars=%d", kind, client.provider, len(prompt))
        outcome = await executor.execute(kind, lambda: client.complete(prompt))
        logger.debug("[%s] raw response snippet: %s", kind, outcome.value[:200])
        parsed = _validate_llm_response(outcome.value, model)
        parsed.meta = {
            "mode": "real",
            "truncated": truncated,
            "duration_ms": round((time.perf_counter() - start) * 1000),
            "attempts": outcome.attempts,
        }
        return parsed.model_dump()
    except Exception as exc:
        attempts = getattr(exc, "attempts", [])
        logger.error("[%s] evaluation failed: %s (attempts=%s)", kind, exc, attempts)
        if client.cfg.AI_FALLBACK_TO_MOCK:
            logger.warning("[%s] falling back to mock evaluation", kind)
            meta = {"mode": "mock_fallback", "error": str(exc),
                    "duration_ms": round((time.perf_counter() - start) * 1000)}
            return model.model_validate({**fallback, "meta": meta}).model_dump()
        raise RemoteCallError(
            f"Failed to evaluate {kind.lower()} with AI: {exc}",
            category=classify_error(exc),
            attempts=attempts,
        ) from exc


async def evaluate_cv_llm(cv_text: str, contexts: Dict[str, List[str]], *, job_title: str,
                          client: LLMClient, executor: RetryExecutor) -> Dict:
    truncated = truncate_text(cv_text, client.cfg.AI_CV_MAX_CHARS)
    prompt = CV_EVAL_PROMPT.format(
        job_title=job_title,
        job_description=format_refs(contexts.get("job_description"), "JD"),
        rubric_cv=format_refs(contexts.get("rubric_cv"), "RCV"),
        cv_text=truncated,
    )
    return await _evaluate("CV", prompt, CVEvaluation, MOCK_CV, FALLBACK_CV,
                           len(truncated) != len(cv_text), client=client, executor=executor)


async def evaluate_project_llm(project_text: str, contexts: Dict[str, List[str]], *,
                               client: LLMClient, executor: RetryExecutor) -> Dict:
    truncated = truncate_text(project_text, client.cfg.AI_PROJECT_MAX_CHARS)
    prompt = PROJECT_EVAL_PROMPT.format(
        project_text=truncated,
        case_brief=format_refs(contexts.get("case_brief"), "CB"),
        rubric_project=format_refs(contexts.get("rubric_project"), "RP"),
    )
    return await _evaluate("PROJECT", prompt, ProjectEvaluation, MOCK_PROJECT, FALLBACK_PROJECT,
                           len(truncated) != len(project_text), client=client, executor=executor)


async def summarize_overall_llm(*, job_title: str, cv_match_rate, project_score,
                                cv_feedback: Optional[str], project_feedback: Optional[str],
                                client: LLMClient, executor: RetryExecutor) -> str:
    prompt = FINAL_SUMMARY_PROMPT.format(
        job_title=job_title,
        cv_match_rate=cv_match_rate,
        project_score=project_score,
        cv_feedback=cv_feedback or "N/A",
        project_feedback=project_feedback or "N/A",
    )
    outcome = await executor.execute(
        "SUMMARY", lambda: client.complete(prompt, temperature=0.4, max_tokens=250))
    return (outcome.value or "").strip()
