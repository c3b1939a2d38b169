import re
import json
import time
import asyncio
import logging
from functools import lru_cache
from typing import Dict, List, Optional

from app.settings import Settings
from domain.errors import BothEvaluationsFailed
from domain.schemas import CONTEXT_TYPES, EvaluationResult
from domain.services.scoring import (
    MOCK_CLOSING,
    cv_match_rate,
    enforce_sentence_constraint,
    preliminary_summary,
    project_score,
)
from infra.llm.client import (
    LLMClient,
    evaluate_cv_llm,
    evaluate_project_llm,
    get_llm_client,
    summarize_overall_llm,
)
from infra.llm.retry import RetryExecutor
from infra.rag.retriever import Retriever

logger = logging.getLogger("evaluation_pipeline")


def redact_numeric_examples(text: str) -> str:
    # remove json-like examples with numeric scores to prevent bias
    text = re.sub(r'\{[^{}]{0,200}("project_score"|\'project_score\')[^{}]+\}',
                  '[redacted-example]', text, flags=re.I | re.S)
    text = re.sub(r'\{[^{}]{0,200}("cv_match_rate"|\'cv_match_rate\')[^{}]+\}',
                  '[redacted-example]', text, flags=re.I | re.S)
    return text


def sanitize_refs(refs: List[str]) -> List[str]:
    return [redact_numeric_examples(r) for r in refs]


class EvaluationPipeline:
    def __init__(self, client: Optional[LLMClient] = None, retriever: Optional[Retriever] = None,
                 executor: Optional[RetryExecutor] = None, cfg: Optional[Settings] = None):
        self.client = client or get_llm_client()
        self.cfg = cfg or self.client.cfg
        self.retriever = retriever or Retriever(cfg=self.cfg)
        self.executor = executor or RetryExecutor(self.cfg.AI_RETRY_ATTEMPTS, self.cfg.AI_RETRY_BASE_DELAY_MS)

    async def _retrieve(self, cv_text: str, project_text: str, issues: List[Dict]) -> Dict[str, List[str]]:
        contexts: Dict[str, List[str]] = {name: [] for name in CONTEXT_TYPES}
        try:
            found = await self.retriever.retrieve_contexts(cv_text, project_text, self.cfg.RAG_TOP_K)
            contexts.update({name: sanitize_refs(refs) for name, refs in found.items()})
        except Exception as e:
            logger.warning(f"Retrieval failed, continuing without context: {e}")
            issues.append({"component": "retrieval", "error": str(e)})
        for name in CONTEXT_TYPES:
            logger.info(f"Retrieved {len(contexts[name])} {name} chunks")
        return contexts

    async def _synthesize(self, job_title: str, match_rate, proj_score, cv_eval, project_eval,
                          issues: List[Dict], metadata: Dict) -> str:
        cv_summary = cv_eval.get("overall_summary") if cv_eval else None
        project_summary = project_eval.get("overall_summary") if project_eval else None
        summary = preliminary_summary(job_title, match_rate, proj_score, cv_summary, project_summary)
        if not self.client.available:
            metadata["final_summary_mode"] = "mock"
            return enforce_sentence_constraint(f"{summary} {MOCK_CLOSING}")
        start = time.perf_counter()
        try:
            text = await summarize_overall_llm(
                job_title=job_title,
                cv_match_rate=match_rate,
                project_score=proj_score,
                cv_feedback=cv_summary,
                project_feedback=project_summary,
                client=self.client,
                executor=self.executor,
            )
            summary = text or summary
            metadata["final_summary_mode"] = "real"
            metadata["final_summary_duration_ms"] = round((time.perf_counter() - start) * 1000)
        except Exception as e:
            logger.warning(f"Final summary synthesis failed, using template: {e}")
            issues.append({"component": "final_summary", "error": str(e)})
            metadata["final_summary_mode"] = "fallback"
            # marker rides on the last sentence so truncation cannot drop it
            trimmed = enforce_sentence_constraint(summary).rstrip(".!?")
            return f"{trimmed} (final summary fallback)."
        return enforce_sentence_constraint(summary)

    def _synthetic_result(self, job_title: str, issues: List[Dict], metadata: Dict) -> Dict:
        logger.warning("Both evaluations failed -> generating synthetic fallback result")
        metadata["synthetic"] = True
        return EvaluationResult(
            cv_match_rate=0.0,
            project_score=0.0,
            overall_summary=enforce_sentence_constraint(
                f"Both evaluations failed for {job_title}. Synthetic fallback result generated."),
            issues=issues,
            metadata=metadata,
        ).model_dump()

    async def run(self, job_title: str, cv_text: str, project_text: str) -> Dict:
        logger.info("=== Starting evaluation ===")
        logger.info(f"Job title: {job_title}")
        logger.info(f"CV text length: {len(cv_text)} chars")
        logger.info(f"Project text length: {len(project_text)} chars")
        started = time.perf_counter()
        issues: List[Dict] = []

        contexts = await self._retrieve(cv_text, project_text, issues)

        logger.info("Calling LLM for CV and Project evaluation")
        cv_outcome, project_outcome = await asyncio.gather(
            evaluate_cv_llm(cv_text,
                            {k: contexts[k] for k in ("job_description", "rubric_cv")},
                            job_title=job_title, client=self.client, executor=self.executor),
            evaluate_project_llm(project_text,
                                 {k: contexts[k] for k in ("case_brief", "rubric_project")},
                                 client=self.client, executor=self.executor),
            return_exceptions=True,
        )
        cv_eval = project_eval = None
        for component, outcome in (("cv", cv_outcome), ("project", project_outcome)):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.error(f"{component} evaluation failed: {outcome}")
                issues.append({"component": component, "error": str(outcome)})
            elif component == "cv":
                cv_eval = outcome
            else:
                project_eval = outcome

        metadata: Dict = {
            "job_title": job_title,
            "provider": self.client.provider,
            "cv_present": cv_eval is not None,
            "project_present": project_eval is not None,
            "retrieved": contexts,
        }

        if cv_eval is None and project_eval is None:
            if self.cfg.AI_AUTO_BOTH_FAIL_FALLBACK:
                return self._synthetic_result(job_title, issues, metadata)
            raise BothEvaluationsFailed(issues)

        match_rate = cv_match_rate(cv_eval)
        proj_score = project_score(project_eval)
        logger.info(f"Scores: cv_match_rate={match_rate} project_score={proj_score}")

        logger.info("Synthesizing overall summary")
        overall = await self._synthesize(job_title, match_rate, proj_score, cv_eval, project_eval,
                                         issues, metadata)
        metadata["duration_ms"] = round((time.perf_counter() - started) * 1000)

        result = EvaluationResult(
            cv_evaluation=cv_eval,
            project_evaluation=project_eval,
            cv_match_rate=match_rate,
            project_score=proj_score,
            cv_feedback=cv_eval.get("overall_summary") if cv_eval else None,
            project_feedback=project_eval.get("overall_summary") if project_eval else None,
            overall_summary=overall,
            issues=issues,
            metadata=metadata,
        ).model_dump()

        logger.info(f"Final combined result:\n{json.dumps(result, indent=2, default=str)}")
        logger.info("=== Evaluation completed ===\n")
        return result


@lru_cache
def get_pipeline() -> EvaluationPipeline:
    return EvaluationPipeline()
