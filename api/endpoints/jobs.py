from typing import List
from fastapi import APIRouter, Depends
from domain.schemas import EvaluationSummary, JobStatusResponse
from domain.services.job_orchestrator import JobOrchestrator, get_orchestrator

router = APIRouter()


@router.get("/evaluations", response_model=List[EvaluationSummary])
async def list_evaluations(orchestrator: JobOrchestrator = Depends(get_orchestrator)) -> List[EvaluationSummary]:
    return [EvaluationSummary(**row) for row in orchestrator.list_evaluations()]


@router.post("/jobs/{job_id}/cancel", response_model=JobStatusResponse)
async def cancel_job(job_id: str,
                     orchestrator: JobOrchestrator = Depends(get_orchestrator)) -> JobStatusResponse:
    out = orchestrator.cancel(job_id)
    return JobStatusResponse(id=out["id"], status=out["status"])
