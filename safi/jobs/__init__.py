"""Background work — separation jobs and upload retention."""

from safi.jobs.orchestrator import FAILURE_MESSAGE, JobRunner
from safi.jobs.sweeper import RetentionSweeper

__all__ = [
    "FAILURE_MESSAGE",
    "JobRunner",
    "RetentionSweeper",
]
