"""
app/api/routers package marker.
"""

from app.api.routers.file_imports import router as file_imports_router

__all__ = [
    "file_imports_router",
]
