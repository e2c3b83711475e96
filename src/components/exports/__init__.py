"""
Exports component - PDF export job requests, queries and downloads.
"""

from ._impl import ERROR_STATUS, ExportService, artifact_path
from .component import (
    run,
    run_create,
    run_delete,
    run_download,
    run_get,
    run_list,
    run_queue_status,
    run_recent,
)
from .models import (
    CreateExportInput,
    DeleteExportInput,
    DeleteOutput,
    DownloadExportInput,
    DownloadOutput,
    ExportListOutput,
    ExportOutput,
    ExportValidationError,
    GetExportInput,
    ListExportsInput,
    QueueStatusInput,
    QueueStatusOutput,
    RecentExportsInput,
)
from .ports import (
    ArtifactStorePort,
    BookRepoPort,
    ExportJobRepoPort,
    RoleProviderPort,
    TimePort,
)

__all__ = [
    # Entry points
    "run",
    "run_create",
    "run_delete",
    "run_download",
    "run_get",
    "run_list",
    "run_queue_status",
    "run_recent",
    # Service
    "ERROR_STATUS",
    "ExportService",
    "artifact_path",
    # Input models
    "CreateExportInput",
    "DeleteExportInput",
    "DownloadExportInput",
    "GetExportInput",
    "ListExportsInput",
    "QueueStatusInput",
    "RecentExportsInput",
    # Output models
    "DeleteOutput",
    "DownloadOutput",
    "ExportListOutput",
    "ExportOutput",
    "ExportValidationError",
    "QueueStatusOutput",
    # Ports
    "ArtifactStorePort",
    "BookRepoPort",
    "ExportJobRepoPort",
    "RoleProviderPort",
    "TimePort",
]
