from sqlalchemy import Column, String, Text, DateTime, ForeignKey
from sqlalchemy.sql import func
from infra.db.session import Base

class DocumentRecord(Base):
    __tablename__ = "documents"
    id = Column(String, primary_key=True)
    # cv | project | job_description | case_brief | rubric_cv | rubric_project
    type = Column(String, nullable=False)
    path = Column(String, nullable=False)
    original_name = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())

class EvaluationRecord(Base):
    __tablename__ = "evaluations"
    id = Column(String, primary_key=True)
    status = Column(String, nullable=False, default="queued", index=True)
    job_title = Column(String, nullable=True)
    cv_document_id = Column(String, ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)
    project_document_id = Column(String, ForeignKey("documents.id", ondelete="SET NULL"), nullable=True)
    cv_file_path = Column(String, nullable=True)
    project_file_path = Column(String, nullable=True)
    result = Column(Text, nullable=True)  # JSON text
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
