"""
tests/test_file_imports_router.py

HTTP surface of the file import endpoints, with services bound to an
in-memory database and inline task execution.
"""

from __future__ import annotations

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.api import dependencies
from app.api.dependencies import is_privileged_caller
from app.api.routers import file_imports_router
from app.config import AdminSettings
from app.services.ingestion_controller import get_ingestion_controller
from app.services.ingestion_orchestrator_service import (
    IngestionOrchestratorService,
    InlineTaskExecutor,
    get_ingestion_orchestrator_service,
    get_task_executor,
)
from db.models.file_import_control import FileImportStatus

CONSOLIDATED_CSV = (
    "CNPJ_da_Administradora;Nome_da_Administradora;Código_do_segmento;Data_base;"
    "Quantidade_de_cotas_ativas_em_dia\n"
    "12345678000199;Consórcio Exemplo;3;2024-03;40\n"
).encode("utf-8")


@pytest.fixture()
def privileged() -> dict[str, bool]:
    return {"value": True}


@pytest.fixture()
def client(controller, privileged) -> TestClient:
    app = FastAPI()
    app.include_router(file_imports_router)
    app.dependency_overrides[get_ingestion_controller] = lambda: controller
    app.dependency_overrides[get_ingestion_orchestrator_service] = lambda: IngestionOrchestratorService(
        controller=controller
    )
    app.dependency_overrides[get_task_executor] = InlineTaskExecutor
    app.dependency_overrides[is_privileged_caller] = lambda: privileged["value"]
    return TestClient(app)


def _upload(client: TestClient, file_name: str = "202403_Segmentos.csv", content: bytes = CONSOLIDATED_CSV):
    return client.post("/imports/upload", files={"file": (file_name, content, "text/csv")})


class TestUploadAndStatus:
    def test_upload_is_accepted_and_ingested(self, client) -> None:
        response = _upload(client)

        assert response.status_code == 202
        body = response.json()
        assert body["file_id"] == "202403_Segmentos"
        assert body["status"] == FileImportStatus.UPLOADED
        assert body["file_type"] == "segments"
        assert body["storage_path"].startswith("raw-uploads/")
        assert body["storage_path"].endswith("/202403_Segmentos.csv")

        status_response = client.get("/imports/202403_Segmentos")
        assert status_response.status_code == 200
        control = status_response.json()
        assert control["status"] == FileImportStatus.SUCCESS
        assert control["rows_processed"] == 1
        assert control["target_table"] == "series_consolidadas"
        assert control["reference_date"] == "2024-03"

    def test_upload_rejects_unsupported_extension(self, client) -> None:
        response = _upload(client, file_name="report.pdf", content=b"%PDF")

        assert response.status_code == 400

    def test_unknown_file_id_is_404(self, client) -> None:
        assert client.get("/imports/ghost").status_code == 404

    def test_list_filters(self, client) -> None:
        _upload(client)
        _upload(client, file_name="202401_dados.csv", content=b"a;b\n1;2\n")

        everything = client.get("/imports").json()["files"]
        assert {item["file_id"] for item in everything} == {"202403_Segmentos", "202401_dados"}

        march = client.get("/imports", params={"reference_from": "2024-03", "reference_to": "202403"}).json()
        assert [item["file_id"] for item in march["files"]] == ["202403_Segmentos"]

        failed = client.get("/imports", params={"status": "error"}).json()
        assert [item["file_id"] for item in failed["files"]] == ["202401_dados"]

    def test_list_rejects_malformed_period(self, client) -> None:
        response = client.get("/imports", params={"reference_from": "March"})

        assert response.status_code == 400


class TestStorageEvents:
    def test_event_outside_prefix_is_not_processed(self, client) -> None:
        response = client.post("/imports/events", json={"storage_path": "exports/202403_Segmentos.csv"})

        assert response.status_code == 200
        assert response.json() == {"processed": False, "outcome": None}

    def test_event_for_stored_file_is_processed(self, client, storage) -> None:
        stored = storage.save(file_name="202403_Segmentos.csv", content=CONSOLIDATED_CSV)

        response = client.post("/imports/events", json={"storage_path": stored.storage_path})

        assert response.status_code == 200
        body = response.json()
        assert body["processed"] is True
        assert body["outcome"]["status"] == FileImportStatus.SUCCESS
        assert body["outcome"]["file_name"] == "202403_Segmentos.csv"

    def test_event_for_missing_object_is_404(self, client) -> None:
        response = client.post("/imports/events", json={"storage_path": "raw-uploads/2024-03-05/ghost.csv"})

        assert response.status_code == 404


class TestAdminEndpoints:
    def test_unprivileged_caller_is_forbidden(self, client, privileged) -> None:
        privileged["value"] = False

        response = client.post("/imports/admin/reset")

        assert response.status_code == 403
        assert response.json()["detail"]["code"] == "permission-denied"

    def test_delete_unknown_file_is_404(self, client) -> None:
        response = client.post("/imports/admin/delete", json={"file_id": "ghost"})

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "not-found"

    def test_delete_requires_file_id(self, client) -> None:
        response = client.post("/imports/admin/delete", json={})

        assert response.status_code == 400

    def test_reprocess_and_delete(self, client) -> None:
        storage_path = _upload(client).json()["storage_path"]

        reprocessed = client.post("/imports/admin/reprocess", json={"storage_path": storage_path})
        assert reprocessed.status_code == 200
        assert reprocessed.json()["success"] is True
        assert reprocessed.json()["outcome"]["rows_processed"] == 1

        deleted = client.post("/imports/admin/delete", json={"file_id": "202403_Segmentos"})
        assert deleted.status_code == 200
        tables = {entry["table"]: entry for entry in deleted.json()["tables"]}
        assert tables["series_consolidadas"]["rows_deleted"] == 1
        assert client.get("/imports/202403_Segmentos").status_code == 404

    def test_reset(self, client) -> None:
        _upload(client)

        response = client.post("/imports/admin/reset")

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert client.get("/imports").json()["files"] == []


class TestPrivilegeResolution:
    def test_matching_token_is_privileged(self, monkeypatch) -> None:
        monkeypatch.setattr(dependencies, "get_admin_settings", lambda: AdminSettings(admin_api_token="s3cret"))

        assert is_privileged_caller("s3cret") is True
        assert is_privileged_caller("wrong") is False
        assert is_privileged_caller(None) is False

    def test_unconfigured_token_denies_everyone(self, monkeypatch) -> None:
        monkeypatch.setattr(dependencies, "get_admin_settings", lambda: AdminSettings(admin_api_token=None))

        assert is_privileged_caller("anything") is False
