"""
Export status component - client-side export list kept current by push and polling.
"""

from .component import ExportStatusPoller
from .http_source import HttpExportSource
from .ports import ExportSourceError, ExportSourcePort

__all__ = [
    "ExportSourceError",
    "ExportSourcePort",
    "ExportStatusPoller",
    "HttpExportSource",
]
