"""Shared constants for the progress persistence engine."""

# v1: implicit schema before versioning
# v2: added podcastsCompleted / podcastsInProgress
STATE_VERSION = 2

SUSPEND_DATA_KEY = "cmi.suspend_data"

SCORM_12 = "1.2"
SCORM_2004 = "2004"

REDUCTION_FULL = "full"
REDUCTION_REDUCED = "reduced"
REDUCTION_MINIMAL = "minimal"

SOURCE_LMS = "lms"
SOURCE_LOCAL = "local_storage"
SOURCE_BOTH = "both"
SOURCE_NONE = "none"

READ_ONLY_ERROR = "read-only"
