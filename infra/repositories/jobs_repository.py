import uuid
import json
import logging
from datetime import datetime
from typing import Optional, Dict, Any, List
from infra.db.session import SessionLocal
from infra.db.models import EvaluationRecord
from domain.errors import InvalidTransition, NotFound
from domain.schemas import JobStatus, can_transition

logger = logging.getLogger(__name__)


def serialize_result(val: Any) -> str:
    if isinstance(val, str):
        try:
            json.loads(val)
            return val
        except ValueError:
            return json.dumps({"raw": val}, ensure_ascii=False)
    try:
        return json.dumps(val, ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        return json.dumps({"error": "serialization_failed", "detail": str(exc)})


def _as_object(text: str, value: Any) -> Dict:
    if isinstance(value, dict):
        return value
    return {"error": "unexpected_result_type", "type": type(value).__name__, "raw": text}


def _unwrap(text: str, value: str) -> Dict:
    try:
        return _as_object(text, json.loads(value))
    except ValueError as exc:
        return {"error": "parse_failed_wrapped", "raw": text, "detail": str(exc)}


def parse_stored_result(raw: Optional[str]) -> Optional[Dict]:
    """Decode a stored result; a corrupt value becomes a marker dict, never an exception."""
    if raw is None:
        return None
    text = raw.strip()
    if not text:
        return {"error": "empty_result"}
    try:
        value = json.loads(text)
    except ValueError as exc:
        if text.startswith('"') and text.endswith('"'):
            return _unwrap(text, text[1:-1].replace('\\"', '"'))
        if text == "[object Object]":
            return {"error": "invalid_serialization_placeholder", "raw": text}
        return {"error": "parse_failed", "raw": text, "detail": str(exc)}
    # double-encoded: a JSON string holding the JSON object
    if isinstance(value, str):
        return _unwrap(text, value)
    return _as_object(text, value)


def _iso(ts: Optional[datetime]) -> Optional[str]:
    return ts.isoformat() if ts else None


class JobsRepository:
    def __init__(self, session_factory=SessionLocal):
        self._session = session_factory

    def create_job(self, job_title: Optional[str], *, cv_document_id: Optional[str] = None,
                   project_document_id: Optional[str] = None, cv_file_path: Optional[str] = None,
                   project_file_path: Optional[str] = None) -> str:
        jid = f"job_{uuid.uuid4().hex}"
        with self._session() as s:
            s.add(EvaluationRecord(id=jid, status=JobStatus.QUEUED.value, job_title=job_title,
                                   cv_document_id=cv_document_id,
                                   project_document_id=project_document_id,
                                   cv_file_path=cv_file_path,
                                   project_file_path=project_file_path))
            s.commit()
        return jid

    def update_status(self, job_id: str, status: str, result: Any = None) -> None:
        """Single-row status write, refused unless the transition table allows it."""
        status = JobStatus(status).value
        with self._session() as s:
            job = s.get(EvaluationRecord, job_id)
            if not job:
                raise NotFound("job", job_id)
            if not can_transition(job.status, status):
                raise InvalidTransition(job_id, job.status, status)
            job.status = status
            if result is not None:
                job.result = serialize_result(result)
            s.commit()

    def get(self, job_id: str) -> Optional[Dict]:
        with self._session() as s:
            job = s.get(EvaluationRecord, job_id)
            if not job:
                return None
            return {
                "id": job.id,
                "status": job.status,
                "job_title": job.job_title,
                "cv_document_id": job.cv_document_id,
                "project_document_id": job.project_document_id,
                "cv_file_path": job.cv_file_path,
                "project_file_path": job.project_file_path,
                "result": parse_stored_result(job.result),
                "created_at": _iso(job.created_at),
                "updated_at": _iso(job.updated_at),
            }

    def list_jobs(self) -> List[Dict]:
        with self._session() as s:
            rows = (s.query(EvaluationRecord)
                    .order_by(EvaluationRecord.created_at.desc(), EvaluationRecord.id)
                    .all())
            return [{"id": r.id, "status": r.status, "job_title": r.job_title,
                     "created_at": _iso(r.created_at), "updated_at": _iso(r.updated_at)}
                    for r in rows]
