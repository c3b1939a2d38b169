from fastapi import APIRouter, Depends
from domain.schemas import JobStatusResponse
from domain.services.job_orchestrator import JobOrchestrator, get_orchestrator

router = APIRouter()


@router.get("/result/{job_id}", response_model=JobStatusResponse)
async def get_result(job_id: str,
                     orchestrator: JobOrchestrator = Depends(get_orchestrator)) -> JobStatusResponse:
    job = orchestrator.get_result(job_id)
    return JobStatusResponse(id=job["id"], status=job["status"], result=job.get("result"), error=job.get("error"))
