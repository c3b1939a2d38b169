"""
HTTP-level tests. The app is used without its startup hook, so no workers run
and jobs stay queued unless a test cancels them.
"""

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.settings import settings
from api.endpoints.upload import get_documents_repo
from domain.services.job_orchestrator import JobOrchestrator, get_orchestrator
from infra.db.models import DocumentRecord, EvaluationRecord
from infra.rag.vector_store import get_corpus_store


@pytest.fixture
def client(jobs_repo, docs_repo, corpus_store, mock_settings, fake_extractor, tmp_path, monkeypatch):
    monkeypatch.setattr(settings, "STORAGE_DIR", str(tmp_path / "uploads"))
    orchestrator = JobOrchestrator(jobs_repo, docs_repo, extractor=fake_extractor, cfg=mock_settings)
    app.dependency_overrides[get_orchestrator] = lambda: orchestrator
    app.dependency_overrides[get_documents_repo] = lambda: docs_repo
    app.dependency_overrides[get_corpus_store] = lambda: corpus_store
    yield TestClient(app)
    app.dependency_overrides.clear()


def upload(client):
    files = {
        "cv": ("my cv.pdf", b"%PDF-1.4 cv", "application/pdf"),
        "project_report": ("report.pdf", b"%PDF-1.4 report", "application/pdf"),
    }
    return client.post("/upload", files=files)


def document_count(session_factory):
    with session_factory() as s:
        return s.query(DocumentRecord).count()


class TestUpload:
    def test_upload_pdfs(self, client, docs_repo, tmp_path):
        r = upload(client)
        assert r.status_code == 201
        body = r.json()
        cv = docs_repo.get(body["cv_id"])
        assert cv["type"] == "cv"
        assert cv["original_name"] == "my cv.pdf"
        assert cv["path"].startswith(str(tmp_path / "uploads"))
        assert docs_repo.get(body["project_id"])["type"] == "project"

    def test_rejects_non_pdf(self, client):
        files = {
            "cv": ("cv.docx", b"not a pdf", "application/octet-stream"),
            "project_report": ("report.pdf", b"%PDF-1.4", "application/pdf"),
        }
        r = client.post("/upload", files=files)
        assert r.status_code == 400

    def test_rejects_oversized_file(self, client, session_factory, tmp_path, monkeypatch):
        monkeypatch.setattr(settings, "MAX_FILE_SIZE", 8)
        r = upload(client)
        assert r.status_code == 400
        assert r.json()["detail"].startswith("File too large")
        assert document_count(session_factory) == 0
        assert not (tmp_path / "uploads").exists()

    def test_bad_project_leaves_no_stored_cv(self, client, session_factory, tmp_path):
        files = {
            "cv": ("cv.pdf", b"%PDF-1.4 cv", "application/pdf"),
            "project_report": ("report.txt", b"plain text", "text/plain"),
        }
        r = client.post("/upload", files=files)
        assert r.status_code == 400
        assert r.json()["detail"] == "project_report must be a PDF file"
        assert document_count(session_factory) == 0
        assert not (tmp_path / "uploads").exists()


class TestEvaluationFlow:
    """Upload, evaluate, poll, cancel."""

    def test_evaluate_then_cancel(self, client):
        ids = upload(client).json()

        r = client.post("/evaluate", json={"job_title": "Backend Engineer", **ids})
        assert r.status_code == 202
        job_id = r.json()["id"]
        assert r.json()["status"] == "queued"

        assert client.get(f"/result/{job_id}").json()["status"] == "queued"

        r = client.post(f"/jobs/{job_id}/cancel")
        assert r.status_code == 200
        assert r.json()["status"] == "canceled"

        r = client.post(f"/jobs/{job_id}/cancel")
        assert r.status_code == 409
        assert r.json()["status"] == "canceled"

        listed = client.get("/evaluations").json()
        assert [row["id"] for row in listed] == [job_id]

    def test_evaluate_unknown_documents(self, client):
        r = client.post("/evaluate", json={"cv_id": "doc_x", "project_id": "doc_y"})
        assert r.status_code == 404
        assert r.json()["detail"] == "document not found"

    def test_evaluate_requires_ids(self, client):
        assert client.post("/evaluate", json={"job_title": "x"}).status_code == 422

    def test_unknown_result(self, client):
        r = client.get("/result/job_missing")
        assert r.status_code == 404
        assert r.json() == {"detail": "job not found", "id": "job_missing"}

    def test_result_with_non_object_payload(self, client, jobs_repo, session_factory):
        job_id = jobs_repo.create_job(None)
        with session_factory() as s:
            row = s.get(EvaluationRecord, job_id)
            row.status = "failed"
            row.result = "42"
            s.commit()

        r = client.get(f"/result/{job_id}")
        assert r.status_code == 200
        assert r.json()["status"] == "failed"
        assert r.json()["result"]["type"] == "int"
        assert r.json()["error"] == "unexpected_result_type"


class TestHealth:
    def test_health(self, client):
        assert client.get("/health").json() == {"status": "ok"}

    def test_vector_store_empty(self, client):
        body = client.get("/vector-store/health").json()
        assert body["status"] == "empty"
        assert body["chunk_count"] == 0

    def test_vector_store_counts_tags(self, client, corpus_store, make_chunks):
        corpus_store.save(make_chunks([("a", ["rubric_cv"]), ("b", ["rubric_cv", "case_brief"])]))
        body = client.get("/vector-store/health").json()
        assert body["status"] == "ok"
        assert body["tags"] == {"rubric_cv": 2, "case_brief": 1}
