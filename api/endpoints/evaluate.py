from fastapi import APIRouter, Depends
from domain.schemas import EvaluateRequest, JobSpec, JobStatusResponse
from domain.services.job_orchestrator import JobOrchestrator, get_orchestrator

router = APIRouter()


@router.post("/evaluate", response_model=JobStatusResponse, status_code=202)
async def evaluate(body: EvaluateRequest,
                   orchestrator: JobOrchestrator = Depends(get_orchestrator)) -> JobStatusResponse:
    job_id = orchestrator.create(JobSpec(
        job_title=body.job_title,
        cv_document_id=body.cv_id,
        project_document_id=body.project_id,
    ))
    return JobStatusResponse(id=job_id, status="queued")
