from enum import Enum
from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Any, Dict, List, Optional


class JobStatus(str, Enum):
    QUEUED = "queued"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELED = "canceled"


TERMINAL_STATUSES = {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELED}

ALLOWED_TRANSITIONS = {
    JobStatus.QUEUED: {JobStatus.PROCESSING, JobStatus.CANCELED},
    JobStatus.PROCESSING: {JobStatus.COMPLETED, JobStatus.FAILED, JobStatus.CANCELED},
}


def can_transition(current: str, target: str) -> bool:
    return JobStatus(target) in ALLOWED_TRANSITIONS.get(JobStatus(current), set())


DOCUMENT_TYPES = ("cv", "project", "job_description", "case_brief", "rubric_cv", "rubric_project")
CONTEXT_TYPES = ("job_description", "rubric_cv", "case_brief", "rubric_project")


class UploadResponse(BaseModel):
    cv_id: Optional[str] = None
    project_id: Optional[str] = None


class EvaluateRequest(BaseModel):
    job_title: Optional[str] = None
    cv_id: str
    project_id: str


class JobSpec(BaseModel):
    """What the caller hands the orchestrator: document ids, raw paths, or both."""
    job_title: Optional[str] = None
    cv_document_id: Optional[str] = None
    project_document_id: Optional[str] = None
    cv_file_path: Optional[str] = None
    project_file_path: Optional[str] = None

    @model_validator(mode="after")
    def _needs_sources(self):
        if not (self.cv_document_id or self.cv_file_path):
            raise ValueError("cv_document_id or cv_file_path is required")
        if not (self.project_document_id or self.project_file_path):
            raise ValueError("project_document_id or project_file_path is required")
        return self


class JobStatusResponse(BaseModel):
    id: str
    status: str
    result: Optional[Dict] = None
    error: Optional[str] = None


class EvaluationSummary(BaseModel):
    id: str
    status: str
    job_title: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Chunk(BaseModel):
    id: str
    text: str
    embedding: List[float]
    tags: List[str] = Field(default_factory=list)


class CriterionScore(BaseModel):
    score: float
    feedback: str = ""

    @field_validator("score", mode="before")
    @classmethod
    def _clamp(cls, value):
        return min(5.0, max(1.0, float(value)))

    @field_validator("feedback", mode="before")
    @classmethod
    def _as_text(cls, value):
        if value is None:
            return ""
        if isinstance(value, list):
            return " ".join(str(item) for item in value if item is not None)
        return str(value)


class CVEvaluation(BaseModel):
    technical_skills: CriterionScore
    experience_level: CriterionScore
    relevant_achievements: CriterionScore
    cultural_fit: CriterionScore
    overall_summary: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)


class ProjectEvaluation(BaseModel):
    correctness: CriterionScore
    code_quality: CriterionScore
    resilience: CriterionScore
    documentation: CriterionScore
    creativity: CriterionScore
    overall_summary: str = ""
    meta: Dict[str, Any] = Field(default_factory=dict)


class Issue(BaseModel):
    component: str
    error: str


class EvaluationResult(BaseModel):
    cv_evaluation: Optional[CVEvaluation] = None
    project_evaluation: Optional[ProjectEvaluation] = None
    cv_match_rate: Optional[float] = None
    project_score: Optional[float] = None
    cv_feedback: Optional[str] = None
    project_feedback: Optional[str] = None
    overall_summary: str
    issues: List[Issue] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
