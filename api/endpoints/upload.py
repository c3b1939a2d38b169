import os
import uuid
from typing import Tuple
from fastapi import APIRouter, Depends, UploadFile, File, HTTPException
from app.settings import settings
from domain.schemas import UploadResponse
from infra.repositories.documents_repository import DocumentsRepository

router = APIRouter()


def get_documents_repo() -> DocumentsRepository:
    return DocumentsRepository()


async def read_pdf_upload(f: UploadFile, dtype: str) -> Tuple[str, bytes]:
    name = f.filename or "uploaded.pdf"
    if not name.lower().endswith(".pdf"):
        raise HTTPException(status_code=400, detail=f"{dtype} must be a PDF file")
    content = await f.read(settings.MAX_FILE_SIZE + 1)
    if len(content) > settings.MAX_FILE_SIZE:
        raise HTTPException(status_code=400, detail=f"File too large: {dtype} exceeds {settings.MAX_FILE_SIZE} bytes")
    return name, content


@router.post("/upload", response_model=UploadResponse, status_code=201)
async def upload(cv: UploadFile = File(...),
                 project_report: UploadFile = File(...),
                 docs_repo: DocumentsRepository = Depends(get_documents_repo)) -> UploadResponse:
    # both files are checked before either is stored
    cv_name, cv_content = await read_pdf_upload(cv, "cv")
    project_name, project_content = await read_pdf_upload(project_report, "project_report")
    os.makedirs(settings.STORAGE_DIR, exist_ok=True)

    ids = {}
    for dtype, name, content in (("cv", cv_name, cv_content), ("project", project_name, project_content)):
        path = os.path.join(settings.STORAGE_DIR, f"{uuid.uuid4().hex}_{name.replace(' ', '_')}")
        with open(path, "wb") as out:
            out.write(content)
        ids[dtype] = docs_repo.save(dtype=dtype, path=path, original_name=name)
    return UploadResponse(cv_id=ids["cv"], project_id=ids["project"])
