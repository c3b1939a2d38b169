import uuid
from typing import Dict, Optional
from infra.db.session import SessionLocal
from infra.db.models import DocumentRecord
from domain.schemas import DOCUMENT_TYPES

class DocumentsRepository:
    def __init__(self, session_factory=SessionLocal):
        self._session = session_factory

    def save(self, dtype: str, path: str, original_name: Optional[str] = None) -> str:
        if dtype not in DOCUMENT_TYPES:
            raise ValueError(f"unknown document type: {dtype}")
        did = f"doc_{uuid.uuid4().hex}"
        with self._session() as s:
            s.add(DocumentRecord(id=did, type=dtype, path=path, original_name=original_name))
            s.commit()
        return did

    def get(self, doc_id: str) -> Optional[Dict]:
        with self._session() as s:
            rec = s.get(DocumentRecord, doc_id)
            if not rec:
                return None
            return {"id": rec.id, "type": rec.type, "path": rec.path,
                    "original_name": rec.original_name}
