import asyncio
import logging
from functools import lru_cache
from typing import Callable, Dict, List, Optional

from app.settings import Settings, settings
from domain.errors import BothEvaluationsFailed, InvalidTransition, NotFound
from domain.schemas import TERMINAL_STATUSES, JobSpec, JobStatus
from domain.services.evaluation_pipeline import EvaluationPipeline, get_pipeline
from infra.pdf.parser import PdfText, extract_text
from infra.repositories.documents_repository import DocumentsRepository
from infra.repositories.jobs_repository import JobsRepository

logger = logging.getLogger("job_orchestrator")


class CancellationToken:
    """Advisory flag, polled by the orchestrator at its two checkpoints."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class JobOrchestrator:
    """Owns evaluation jobs from `queued` to a terminal state.

    `create` persists the job and puts its id on a queue; a bounded pool of
    worker tasks (`start`) drains the queue and runs `process` for each id.
    Cancellation is cooperative: `cancel` flips the job's token and the
    worker gives up at the next checkpoint, one before text extraction and
    one before the evaluation calls. Work already past the second checkpoint
    finishes, but its final write is refused by the store's transition check.
    """

    def __init__(
        self,
        jobs: Optional[JobsRepository] = None,
        documents: Optional[DocumentsRepository] = None,
        pipeline: Optional[EvaluationPipeline] = None,
        *,
        extractor: Callable[[str], PdfText] = extract_text,
        max_concurrent_jobs: Optional[int] = None,
        cfg: Settings = settings,
    ):
        self.jobs = jobs or JobsRepository()
        self.documents = documents or DocumentsRepository()
        self._pipeline = pipeline
        self._extract = extractor
        self.cfg = cfg
        self.max_concurrent_jobs = max(1, max_concurrent_jobs or cfg.MAX_CONCURRENT_JOBS)
        self._queue: asyncio.Queue = asyncio.Queue()
        self._workers: List[asyncio.Task] = []
        self._tokens: Dict[str, CancellationToken] = {}

    @property
    def pipeline(self) -> EvaluationPipeline:
        if self._pipeline is None:
            self._pipeline = get_pipeline()
        return self._pipeline

    # --- worker pool -------------------------------------------------------

    async def start(self) -> None:
        if self._workers:
            return
        self._workers = [
            asyncio.create_task(self._worker(i), name=f"evaluation-worker-{i}")
            for i in range(self.max_concurrent_jobs)
        ]
        logger.info(f"Started {len(self._workers)} evaluation workers")

    async def stop(self) -> None:
        for w in self._workers:
            w.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []

    async def join(self) -> None:
        """Wait until every enqueued job has been processed."""
        await self._queue.join()

    async def _worker(self, n: int) -> None:
        while True:
            job_id = await self._queue.get()
            try:
                await self.process(job_id)
            except Exception as e:
                logger.exception(f"Worker {n} failed processing job {job_id}")
                self._finish(job_id, JobStatus.FAILED, {"error": str(e)})
            finally:
                self._queue.task_done()

    # --- operations --------------------------------------------------------

    def _resolve_path(self, document_id: Optional[str], path: Optional[str]) -> Optional[str]:
        if not document_id:
            return path
        doc = self.documents.get(document_id)
        if not doc:
            raise NotFound("document", document_id)
        return doc["path"]

    def create(self, spec: JobSpec) -> str:
        cv_path = self._resolve_path(spec.cv_document_id, spec.cv_file_path)
        project_path = self._resolve_path(spec.project_document_id, spec.project_file_path)
        job_id = self.jobs.create_job(
            spec.job_title,
            cv_document_id=spec.cv_document_id,
            project_document_id=spec.project_document_id,
            cv_file_path=cv_path,
            project_file_path=project_path,
        )
        self._tokens[job_id] = CancellationToken()
        self._queue.put_nowait(job_id)
        logger.info(f"Evaluation job created: {job_id}")
        return job_id

    def _finish(self, job_id: str, status: JobStatus, result: Dict) -> None:
        try:
            self.jobs.update_status(job_id, status, result)
        except (InvalidTransition, NotFound) as e:
            logger.warning(f"Dropping {status.value} result for job {job_id}: {e}")

    async def process(self, job_id: str) -> Optional[Dict]:
        token = self._tokens.setdefault(job_id, CancellationToken())
        try:
            job = self.jobs.get(job_id)
            if not job:
                raise NotFound("job", job_id)
            if token.cancelled or JobStatus(job["status"]) in TERMINAL_STATUSES:
                logger.info(f"Job {job_id} is {job['status']}, not starting it.")
                return None
            try:
                self.jobs.update_status(job_id, JobStatus.PROCESSING)
            except InvalidTransition as e:
                logger.info(f"Job {job_id} not started: {e}")
                return None

            # checkpoint 1
            if token.cancelled:
                logger.info(f"Job {job_id} was canceled before text extraction.")
                return None
            return await self._run(job_id, job, token)
        finally:
            self._tokens.pop(job_id, None)

    async def _run(self, job_id: str, job: Dict, token: CancellationToken) -> Optional[Dict]:
        try:
            logger.info(f"Extracting PDF content for job: {job_id}")
            cv_doc, project_doc = await asyncio.gather(
                asyncio.to_thread(self._extract, job["cv_file_path"]),
                asyncio.to_thread(self._extract, job["project_file_path"]),
            )

            # checkpoint 2
            if token.cancelled:
                logger.info(f"Job {job_id} was canceled after text extraction, skipping evaluation.")
                return None

            result = await self.pipeline.run(
                job["job_title"] or self.cfg.DEFAULT_JOB_TITLE, cv_doc.text, project_doc.text)
            result.setdefault("metadata", {})["documents"] = {
                "cv": {"pages": cv_doc.page_count, "words": cv_doc.word_count},
                "project": {"pages": project_doc.page_count, "words": project_doc.word_count},
            }
        except BothEvaluationsFailed as e:
            logger.error(f"Job {job_id} failed: {e}")
            self._finish(job_id, JobStatus.FAILED, {"error": str(e), "issues": e.issues})
            return None
        except Exception as e:
            logger.exception(f"Error processing evaluation {job_id}")
            self._finish(job_id, JobStatus.FAILED, {"error": str(e)})
            return None

        self._finish(job_id, JobStatus.COMPLETED, result)
        logger.info(f"Evaluation completed for job: {job_id}")
        return result

    def cancel(self, job_id: str) -> Dict:
        self.jobs.update_status(job_id, JobStatus.CANCELED)
        token = self._tokens.get(job_id)
        if token:
            token.cancel()
        logger.info(f"Job {job_id} canceled")
        return {"id": job_id, "status": JobStatus.CANCELED.value}

    def get_result(self, job_id: str) -> Dict:
        job = self.jobs.get(job_id)
        if not job:
            raise NotFound("job", job_id)
        out = {
            "id": job["id"],
            "status": job["status"],
            "created_at": job["created_at"],
            "updated_at": job["updated_at"],
        }
        result = job["result"]
        if result is not None:
            out["result"] = result
            if job["status"] == JobStatus.FAILED.value and isinstance(result, dict):
                out["error"] = result.get("error")
        return out

    def list_evaluations(self) -> List[Dict]:
        return self.jobs.list_jobs()


@lru_cache
def get_orchestrator() -> JobOrchestrator:
    return JobOrchestrator()
