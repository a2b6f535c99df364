"""SCORM host integration."""

from .adapter import (
    KEY_MAP_12_TO_2004,
    SCORM12_SUSPEND_LIMIT,
    SCORM2004_SUSPEND_LIMIT,
    STATUS_MAP_12_TO_2004,
    ScormAdapter,
    find_host_api,
)
from .async_client import AsyncScormClient

__all__ = [
    "AsyncScormClient",
    "KEY_MAP_12_TO_2004",
    "SCORM12_SUSPEND_LIMIT",
    "SCORM2004_SUSPEND_LIMIT",
    "STATUS_MAP_12_TO_2004",
    "ScormAdapter",
    "find_host_api",
]
