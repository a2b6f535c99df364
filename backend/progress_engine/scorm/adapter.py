"""Version-normalising wrapper around a host-provided SCORM runtime API.

The host exposes either the SCORM 2004 object (``API_1484_11``) or the SCORM
1.2 object (``API``) on some ancestor of the frame the course runs in. Callers
always speak SCORM 1.2 key names; they are remapped only when the 2004 API is
present. No method here raises: host failures are logged and reported as
``False`` or ``""``.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

from ..constants import SCORM_12, SCORM_2004

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_DEPTH = 7
SCORM12_SUSPEND_LIMIT = 3200
SCORM2004_SUSPEND_LIMIT = 60000

KEY_MAP_12_TO_2004: Dict[str, str] = {
    "cmi.core.lesson_status": "cmi.completion_status",
    "cmi.core.score.raw": "cmi.score.raw",
    "cmi.core.score.min": "cmi.score.min",
    "cmi.core.score.max": "cmi.score.max",
    "cmi.core.lesson_location": "cmi.location",
    "cmi.core.exit": "cmi.exit",
    "cmi.core.session_time": "cmi.session_time",
    "cmi.core.student_id": "cmi.learner_id",
    "cmi.core.student_name": "cmi.learner_name",
}

STATUS_MAP_12_TO_2004: Dict[str, str] = {
    "passed": "completed",
    "failed": "incomplete",
    "completed": "completed",
    "incomplete": "incomplete",
    "browsed": "incomplete",
    "not attempted": "not attempted",
}

# operation -> (SCORM 1.2 method, SCORM 2004 method)
_METHODS: Dict[str, tuple[str, str]] = {
    "initialize": ("LMSInitialize", "Initialize"),
    "get_value": ("LMSGetValue", "GetValue"),
    "set_value": ("LMSSetValue", "SetValue"),
    "commit": ("LMSCommit", "Commit"),
    "finish": ("LMSFinish", "Terminate"),
    "last_error": ("LMSGetLastError", "GetLastError"),
    "error_string": ("LMSGetErrorString", "GetErrorString"),
}


def find_host_api(root: Any, max_depth: int = DEFAULT_SEARCH_DEPTH) -> tuple[Optional[Any], Optional[str]]:
    """Walk ``root`` and its parents, then its opener, looking for a SCORM API."""
    frame = root
    hops = 0
    while frame is not None and hops < max_depth:
        api = getattr(frame, "API_1484_11", None)
        if api is not None:
            return api, SCORM_2004
        api = getattr(frame, "API", None)
        if api is not None:
            return api, SCORM_12
        parent = getattr(frame, "parent", None)
        if parent is None or parent is frame:
            break
        frame = parent
        hops += 1

    opener = getattr(root, "opener", None) if root is not None else None
    if opener is not None and opener is not root and not getattr(opener, "closed", False):
        return find_host_api(opener, max_depth)
    return None, None


class ScormAdapter:
    """Synchronous adapter over whichever SCORM revision the host provides."""

    def __init__(
        self,
        root: Any = None,
        *,
        search_depth: int = DEFAULT_SEARCH_DEPTH,
        scorm12_limit: int = SCORM12_SUSPEND_LIMIT,
        scorm2004_limit: int = SCORM2004_SUSPEND_LIMIT,
    ) -> None:
        self._root = root
        self._search_depth = search_depth
        self._limits = {SCORM_12: scorm12_limit, SCORM_2004: scorm2004_limit}
        self._api: Optional[Any] = None
        self._version: Optional[str] = None
        self._initialized = False

    @property
    def version(self) -> Optional[str]:
        return self._version

    def is_available(self) -> bool:
        return self._api is not None and self._initialized

    def initialize(self) -> bool:
        if self._initialized:
            return True
        try:
            self._api, self._version = find_host_api(self._root, self._search_depth)
        except Exception:  # noqa: BLE001
            logger.exception("SCORM API discovery failed")
            self._api, self._version = None, None
        if self._api is None:
            logger.warning("No LMS API found - running in standalone mode")
            return False

        result = self._invoke("initialize", "")
        if result == "true":
            self._initialized = True
            logger.info("Initialized SCORM %s connection", self._version)
            return True
        logger.error("SCORM initialize failed: %s", self.get_last_error())
        return False

    def get_value(self, key: str) -> str:
        if not self.is_available():
            return ""
        result = self._invoke("get_value", self._map_key(key))
        return result if isinstance(result, str) else ""

    def set_value(self, key: str, value: str) -> bool:
        if not self.is_available():
            return False
        result = self._invoke("set_value", self._map_key(key), value)
        if result != "true":
            logger.error("SCORM SetValue failed for %s: %s", key, self.get_last_error())
            return False
        return True

    def commit(self) -> bool:
        if not self.is_available():
            return False
        result = self._invoke("commit", "")
        if result != "true":
            logger.error("SCORM commit failed: %s", self.get_last_error())
            return False
        return True

    def terminate(self) -> bool:
        """Mark the attempt as suspended, then close the session."""
        if not self.is_available():
            return False
        self._invoke("set_value", self._map_key("cmi.core.exit"), "suspend")
        result = self._invoke("finish", "")
        self._initialized = False
        if result != "true":
            logger.error("SCORM terminate failed: %s", self.get_last_error())
            return False
        logger.info("SCORM session terminated")
        return True

    def set_completion_status(self, status: str) -> bool:
        if not self.is_available():
            return False
        if self._version == SCORM_2004:
            if status in ("passed", "failed"):
                self.set_value("cmi.success_status", status)
                return self.set_value("cmi.completion_status", "completed")
            return self.set_value("cmi.completion_status", self._map_status(status))
        return self.set_value("cmi.core.lesson_status", status)

    def set_score(self, score: float, minimum: float = 0, maximum: float = 100) -> bool:
        if not self.is_available():
            return False
        clamped = max(minimum, min(maximum, score))
        self.set_value("cmi.core.score.min", _format_number(minimum))
        self.set_value("cmi.core.score.max", _format_number(maximum))
        return self.set_value("cmi.core.score.raw", _format_number(clamped))

    def get_size_limit(self) -> int:
        if self._version == SCORM_2004:
            return self._limits[SCORM_2004]
        return self._limits[SCORM_12]

    def get_last_error(self) -> str:
        if self._api is None:
            return "No API available"
        code = self._invoke("last_error") or "0"
        message = self._invoke("error_string", code)
        return message or f"Error code: {code}"

    def _map_key(self, key: str) -> str:
        if self._version == SCORM_2004:
            return KEY_MAP_12_TO_2004.get(key, key)
        return key

    def _map_status(self, value: str) -> str:
        if self._version == SCORM_2004:
            return STATUS_MAP_12_TO_2004.get(value, value)
        return value

    def _invoke(self, operation: str, *args: str) -> Optional[str]:
        method = self._resolve(operation)
        if method is None:
            return None
        try:
            result = method(*args)
        except Exception:  # noqa: BLE001
            logger.exception("SCORM host call %s failed", operation)
            return None
        return None if result is None else str(result)

    def _resolve(self, operation: str) -> Optional[Callable[..., Any]]:
        if self._api is None:
            return None
        legacy_name, modern_name = _METHODS[operation]
        name = modern_name if self._version == SCORM_2004 else legacy_name
        method = getattr(self._api, name, None)
        return method if callable(method) else None


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


__all__ = [
    "DEFAULT_SEARCH_DEPTH",
    "KEY_MAP_12_TO_2004",
    "SCORM12_SUSPEND_LIMIT",
    "SCORM2004_SUSPEND_LIMIT",
    "STATUS_MAP_12_TO_2004",
    "ScormAdapter",
    "find_host_api",
]
