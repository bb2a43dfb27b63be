"""
File import endpoints: uploads, storage events, control records and admin actions.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status

from app.api.dependencies import get_disclosure_upload, is_privileged_caller
from app.schemas.file_imports import (
    AdminOperationResponse,
    DeleteFileRequest,
    FileImportControlResponse,
    FileImportListResponse,
    IngestionOutcomeResponse,
    ReprocessFileRequest,
    StorageEventRequest,
    StorageEventResponse,
    UploadAcceptedResponse,
)
from app.services.ingestion_controller import (
    AdminErrorCode,
    AdminOperationError,
    AdminResult,
    IngestionController,
    get_ingestion_controller,
)
from app.services.ingestion_orchestrator_service import (
    IngestionOrchestratorService,
    IngestionTaskExecutor,
    get_ingestion_orchestrator_service,
    get_task_executor,
)
from db.repositories.errors import FileStorageError
from ingestion.competence import normalize_competence

router = APIRouter(prefix="/imports", tags=["file-imports"])

_ADMIN_ERROR_STATUS: dict[str, int] = {
    AdminErrorCode.INVALID_ARGUMENT: status.HTTP_400_BAD_REQUEST,
    AdminErrorCode.PERMISSION_DENIED: status.HTTP_403_FORBIDDEN,
    AdminErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    AdminErrorCode.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


@router.post(
    "/upload",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=UploadAcceptedResponse,
)
def upload_file(
    file: UploadFile = Depends(get_disclosure_upload),
    executor: IngestionTaskExecutor = Depends(get_task_executor),
    orchestrator: IngestionOrchestratorService = Depends(get_ingestion_orchestrator_service),
) -> UploadAcceptedResponse:
    try:
        accepted = orchestrator.accept_upload(executor=executor, upload_file=file)
    except FileStorageError as exc:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)) from exc
    finally:
        file.file.close()

    return UploadAcceptedResponse(
        file_id=accepted.control.file_id,
        file_name=accepted.control.file_name,
        storage_path=accepted.storage_path,
        status=accepted.control.status,
        file_type=accepted.control.file_type,
        reference_date=accepted.control.reference_date,
        file_size_bytes=accepted.file_size_bytes,
        checksum=accepted.checksum,
    )


@router.post("/events", response_model=StorageEventResponse)
def handle_storage_event(
    payload: StorageEventRequest,
    orchestrator: IngestionOrchestratorService = Depends(get_ingestion_orchestrator_service),
) -> StorageEventResponse:
    try:
        outcome = orchestrator.handle_event(storage_path=payload.storage_path, file_name=payload.file_name)
    except FileStorageError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc

    if outcome is None:
        return StorageEventResponse(processed=False)
    return StorageEventResponse(processed=True, outcome=IngestionOutcomeResponse.model_validate(outcome))


@router.get("", response_model=FileImportListResponse)
def list_file_imports(
    reference_from: str | None = Query(default=None, description="Inclusive lower bound, YYYY-MM"),
    reference_to: str | None = Query(default=None, description="Inclusive upper bound, YYYY-MM"),
    status_filter: str | None = Query(default=None, alias="status", description="Optional status filter"),
    controller: IngestionController = Depends(get_ingestion_controller),
) -> FileImportListResponse:
    bounds = {"reference_from": reference_from, "reference_to": reference_to}
    for name, value in bounds.items():
        if value is not None and normalize_competence(value) is None:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"{name} must be a YYYY-MM period.",
            )

    controls = controller.list_controls(
        reference_from=normalize_competence(reference_from) if reference_from else None,
        reference_to=normalize_competence(reference_to) if reference_to else None,
        status=status_filter.upper() if status_filter else None,
    )
    return FileImportListResponse(files=[FileImportControlResponse.model_validate(control) for control in controls])


@router.get("/{file_id}", response_model=FileImportControlResponse)
def get_file_import(
    file_id: str,
    controller: IngestionController = Depends(get_ingestion_controller),
) -> FileImportControlResponse:
    control = controller.get_control(file_id)
    if control is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"File import not found: {file_id}",
        )
    return FileImportControlResponse.model_validate(control)


@router.post("/admin/delete", response_model=AdminOperationResponse)
def delete_file(
    payload: DeleteFileRequest,
    caller_is_privileged: bool = Depends(is_privileged_caller),
    controller: IngestionController = Depends(get_ingestion_controller),
) -> AdminOperationResponse:
    try:
        result = controller.delete_file(
            payload.file_id,
            payload.storage_path,
            caller_is_privileged=caller_is_privileged,
        )
    except AdminOperationError as exc:
        raise _admin_http_error(exc) from exc
    return _to_admin_response(result)


@router.post("/admin/reprocess", response_model=AdminOperationResponse)
def reprocess_file(
    payload: ReprocessFileRequest,
    caller_is_privileged: bool = Depends(is_privileged_caller),
    controller: IngestionController = Depends(get_ingestion_controller),
) -> AdminOperationResponse:
    try:
        result = controller.reprocess_file(
            payload.storage_path,
            payload.file_id,
            caller_is_privileged=caller_is_privileged,
        )
    except AdminOperationError as exc:
        raise _admin_http_error(exc) from exc
    return _to_admin_response(result)


@router.post("/admin/reset", response_model=AdminOperationResponse)
def reset_system(
    caller_is_privileged: bool = Depends(is_privileged_caller),
    controller: IngestionController = Depends(get_ingestion_controller),
) -> AdminOperationResponse:
    try:
        result = controller.reset_all(caller_is_privileged=caller_is_privileged)
    except AdminOperationError as exc:
        raise _admin_http_error(exc) from exc
    return _to_admin_response(result)


def _admin_http_error(exc: AdminOperationError) -> HTTPException:
    return HTTPException(
        status_code=_ADMIN_ERROR_STATUS.get(exc.code, status.HTTP_500_INTERNAL_SERVER_ERROR),
        detail=exc.to_dict(),
    )


def _to_admin_response(result: AdminResult) -> AdminOperationResponse:
    return AdminOperationResponse(
        success=result.success,
        message=result.message,
        tables=result.tables or None,
        outcome=IngestionOutcomeResponse.model_validate(result.outcome) if result.outcome else None,
    )
