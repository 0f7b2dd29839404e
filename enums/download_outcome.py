from enum import Enum


class DownloadOutcome(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
