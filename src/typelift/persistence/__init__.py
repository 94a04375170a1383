"""Persistence: project phase state and run statistics stored under the workdir."""

from typelift.persistence.project_state import (
    COMPLETED_PHASE,
    ProjectState,
    ProjectStateError,
    state_file_for,
)
from typelift.persistence.statistics import (
    FileStatistics,
    RunStatistics,
    StatisticsError,
    statistics_file_for,
)

__all__ = [
    "COMPLETED_PHASE",
    "FileStatistics",
    "ProjectState",
    "ProjectStateError",
    "RunStatistics",
    "StatisticsError",
    "state_file_for",
    "statistics_file_for",
]
