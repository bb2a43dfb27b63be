"""
app/services package marker.
"""

from app.services.ingestion_controller import (
    AdminOperationError,
    IngestionController,
    get_ingestion_controller,
)
from app.services.ingestion_orchestrator_service import (
    IngestionOrchestratorService,
    get_ingestion_orchestrator_service,
)

__all__ = [
    "AdminOperationError",
    "IngestionController",
    "get_ingestion_controller",
    "IngestionOrchestratorService",
    "get_ingestion_orchestrator_service",
]
