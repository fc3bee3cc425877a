"""Export package — canvas documents, zip bundles, folder handles."""

from cascade.export.canvas import (
    EMPTY_PROJECT_MESSAGE,
    ExportResult,
    export_project,
    export_project_to_folder,
)
from cascade.export.folder import FileHandle, LocalFolder

__all__ = [
    "EMPTY_PROJECT_MESSAGE",
    "ExportResult",
    "FileHandle",
    "LocalFolder",
    "export_project",
    "export_project_to_folder",
]
