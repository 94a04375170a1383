"""Control-plane public API."""

from typelift.control_plane.file_schedule import FileSchedule, ScheduleExhaustedError
from typelift.control_plane.orchestrator import ProjectRepairOrchestrator, RepairRun
from typelift.control_plane.repair_loop import (
    RepairIterationController,
    insert_file_directives,
    iteration_cap,
)

__all__ = [
    "FileSchedule",
    "ProjectRepairOrchestrator",
    "RepairIterationController",
    "RepairRun",
    "ScheduleExhaustedError",
    "insert_file_directives",
    "iteration_cap",
]
