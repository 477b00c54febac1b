"""Import engine services: session store, validation, scoped import, pipeline."""

from mediaplan_ingestion.services.import_executor import (
    BackgroundImportRunner,
    ScopedImportExecutor,
    delete_scope,
)
from mediaplan_ingestion.services.pipeline import ImportPipeline
from mediaplan_ingestion.services.session_store import (
    FileSessionStore,
    SessionStore,
    SqlSessionStore,
)
from mediaplan_ingestion.services.validation_service import ValidationService

__all__ = [
    "BackgroundImportRunner",
    "FileSessionStore",
    "ImportPipeline",
    "ScopedImportExecutor",
    "SessionStore",
    "SqlSessionStore",
    "ValidationService",
    "delete_scope",
]
