"""Command-line interface router for typelift."""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from typelift.config import (
    ConfigLoadError,
    ConfigValidationError,
    TypeliftSettings,
    load_settings,
)
from typelift.control_plane import ProjectRepairOrchestrator
from typelift.domain.models import Phase, Project, ProjectRepairResult
from typelift.observability import LoggingConfig, configure_logging, new_run_id, shutdown_logging
from typelift.persistence import (
    ProjectState,
    ProjectStateError,
    RunStatistics,
    state_file_for,
)
from typelift.quality import audit_suppressions, format_json, format_text
from typelift.synthesis_plane.providers import ClaudeAgentOracle, TransformationOracle
from typelift.ui.render import CLIRenderer, create_renderer
from typelift.verification_plane import (
    DiagnosticAggregator,
    LintChecker,
    TypecheckChecker,
    format_errors_per_file,
    group_errors_by_file,
)
from typelift.verification_plane.checkers import LocalSubprocessExecutor

PROG: Final[str] = "typelift"


@dataclass(frozen=True, slots=True)
class CLIError(RuntimeError):
    """Typed CLI failure with an explicit process exit code."""

    message: str
    exit_code: int = 1

    def __str__(self) -> str:
        return self.message


# ---------------------------------------------------------------------------
# Parser
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse command router for all supported CLI workflows."""

    parser = argparse.ArgumentParser(
        prog=PROG,
        description=(
            "typelift — agent-driven, behavior-preserving typing migration.\n\n"
            "Common workflows:\n"
            "  typelift run ./myproject            Run the project's next phase\n"
            "  typelift check myproject            Show current errors per file\n"
            "  typelift suppressions myproject     Audit suppression comments\n"
            "  typelift status myproject           Show phase and statistics\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--config",
        dest="config_path",
        default=None,
        help="Path to typelift TOML config (default: ./typelift.toml if present).",
    )
    common.add_argument(
        "--workdir",
        default=None,
        help="Directory holding project state and statistics (overrides paths.workdir).",
    )
    common.add_argument(
        "--log-level",
        default=None,
        help="Log level for the run log (overrides observability.log_level).",
    )
    common.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        default=False,
        help="Show detailed output.",
    )
    common.add_argument(
        "--no-color",
        action="store_true",
        default=False,
        help="Disable colored output (also respects NO_COLOR env var).",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    # run -----------------------------------------------------------------
    run_parser = subparsers.add_parser(
        "run",
        parents=[common],
        help="Execute the project's next migration phase",
        description=(
            "Phase 1 drives mypy to zero errors; phase 2 adds untyped-definition checks and the\n"
            "explicit-Any lint rule. The phase advances when no errors remain.\n\n"
            "Examples:\n"
            "  typelift run ./myproject\n"
            "  typelift run myproject --json\n"
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    run_parser.add_argument("project", help="Project name (from the workdir) or path")
    run_parser.add_argument(
        "--no-lint", action="store_true", help="Disable the lint checker in phase 2"
    )
    run_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    run_parser.set_defaults(handler=_cmd_run)

    # check ---------------------------------------------------------------
    check_parser = subparsers.add_parser(
        "check",
        parents=[common],
        help="Show the current errors per file",
    )
    check_parser.add_argument("project", help="Project name (from the workdir) or path")
    check_parser.add_argument("--file", dest="file_scope", default=None, help="Limit to one file")
    check_parser.add_argument(
        "--phase",
        type=int,
        choices=[int(item) for item in Phase],
        default=None,
        help="Check as this phase instead of the project's current one",
    )
    check_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    check_parser.set_defaults(handler=_cmd_check)

    # suppressions --------------------------------------------------------
    suppressions_parser = subparsers.add_parser(
        "suppressions",
        parents=[common],
        help="Audit type: ignore / noqa comments",
        description=(
            "Classify every suppression comment as bug, accepted, file or unlabeled.\n"
            "Exits 1 when unlabeled suppressions exist."
        ),
    )
    suppressions_parser.add_argument("project", help="Project name (from the workdir) or path")
    suppressions_parser.add_argument(
        "--json", action="store_true", help="Emit deterministic JSON output"
    )
    suppressions_parser.set_defaults(handler=_cmd_suppressions)

    # status --------------------------------------------------------------
    status_parser = subparsers.add_parser(
        "status",
        parents=[common],
        help="Show the project's phase and recorded statistics",
    )
    status_parser.add_argument("project", help="Project name (from the workdir) or path")
    status_parser.add_argument("--json", action="store_true", help="Emit deterministic JSON output")
    status_parser.set_defaults(handler=_cmd_status)

    return parser


def run_cli(argv: Sequence[str] | None = None) -> int:
    """Parse argv, route to a command handler, and return process exit code."""

    parser = build_parser()
    namespace = parser.parse_args(list(argv) if argv is not None else None)
    handler = getattr(namespace, "handler", None)
    if not callable(handler):
        parser.print_help(sys.stderr)
        return 2

    try:
        result = handler(namespace)
    except CLIError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return exc.exit_code
    return int(result)


# ---------------------------------------------------------------------------
# Collaborator factories (replaced in tests)
# ---------------------------------------------------------------------------


def build_aggregator(settings: TypeliftSettings) -> DiagnosticAggregator:
    executor = LocalSubprocessExecutor()
    return DiagnosticAggregator(
        type_checker=TypecheckChecker(
            executor=executor,
            command=settings.mypy_command,
            timeout_seconds=settings.checker_timeout_seconds,
        ),
        linter=LintChecker(
            executor=executor,
            command=settings.ruff_command,
            timeout_seconds=settings.checker_timeout_seconds,
        ),
    )


def build_oracle(settings: TypeliftSettings) -> TransformationOracle:
    return ClaudeAgentOracle(model=settings.model, max_continuations=settings.max_continuations)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _cmd_run(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    state = _load_state(args.project, settings)
    renderer = _get_renderer(args)
    if state.completed:
        renderer.text(f"Project '{state.name}' has completed every phase.")
        return 0

    project = _project_for(state, settings, phase=state.current_phase)
    if args.no_lint:
        project = Project(
            root=project.root,
            phase=project.phase,
            name=project.name,
            targets=project.targets,
            lint_enabled=False,
            extra_source_roots=project.extra_source_roots,
        )

    statistics = RunStatistics.load(state.name, workdir=settings.workdir)

    def _save_progress(partial: ProjectRepairResult) -> None:
        statistics.record(partial)
        statistics.save()

    handle = configure_logging(
        LoggingConfig(
            run_id=new_run_id(),
            base_log_dir=settings.log_dir,
            level=settings.log_level,
            log_to_stdout=settings.log_to_stdout,
        )
    )
    try:
        if not args.json:
            renderer.text(
                f"Executing phase {int(project.phase)} ({project.phase.label}) "
                f"for project at '{project.root}'..."
            )
        orchestrator = ProjectRepairOrchestrator(
            project,
            aggregator=build_aggregator(settings),
            oracle=build_oracle(settings),
            settings=settings,
            on_scope_finished=_save_progress,
        )
        result = asyncio.run(orchestrator.run())
    finally:
        shutdown_logging(handle)

    statistics.record(result)
    statistics.save()
    if result.succeeded:
        state.advance_phase()

    if args.json:
        _emit_json(
            {
                "command": "run",
                "project": state.name,
                "phase": int(result.phase),
                "succeeded": result.succeeded,
                "remaining_error_count": result.remaining_error_count,
                "failed_scopes": list(result.failed_scopes),
                "totals": result.totals.to_dict(),
                "next_phase": state.phase,
                "log_path": str(handle.log_path),
            }
        )
    else:
        renderer.phase_result(result)
        renderer.kv("Run log", handle.log_path)
        if result.succeeded:
            renderer.text(
                f"Phase {int(result.phase)} complete. "
                f"Run '{PROG} run {state.name}' to continue."
            )
        else:
            renderer.text(
                f"Phase {int(result.phase)} finished with {result.remaining_error_count} "
                "errors remaining; run it again to keep going."
            )
    return 0 if result.succeeded else 1


def _cmd_check(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    root, phase = _resolve_project(args.project, settings)
    if args.phase is not None:
        phase = Phase.coerce(args.phase)
    project = Project(
        root=root,
        phase=phase,
        targets=settings.targets,
        lint_enabled=settings.lint_enabled,
        extra_source_roots=settings.extra_source_roots,
    )
    diagnostics = asyncio.run(build_aggregator(settings).get_errors(project, args.file_scope))

    if args.json:
        _emit_json(
            {
                "command": "check",
                "phase": int(phase),
                "error_count": len(diagnostics),
                "diagnostics": [item.to_dict() for item in diagnostics],
            }
        )
    else:
        sys.stdout.write(format_errors_per_file(group_errors_by_file(diagnostics), project=project))
    return 0 if not diagnostics else 1


def _cmd_suppressions(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    root, _ = _resolve_project(args.project, settings)
    audit = audit_suppressions(root)
    sys.stdout.write(format_json(audit) if args.json else format_text(audit))
    return 1 if audit.has_unlabeled else 0


def _cmd_status(args: argparse.Namespace) -> int:
    settings = _load_settings(args)
    state_file = state_file_for(args.project, workdir=settings.workdir)
    if not state_file.exists():
        raise CLIError(f"no state recorded for project {args.project!r} in {settings.workdir}", 2)
    state = _load_state(args.project, settings)
    statistics = RunStatistics.load(state.name, workdir=settings.workdir)

    if args.json:
        _emit_json(
            {
                "command": "status",
                "project": state.name,
                "path": state.path.as_posix(),
                "phase": state.phase,
                "completed": state.completed,
                "statistics": statistics.to_dict(),
            }
        )
        return 0

    renderer = _get_renderer(args)
    renderer.kv("Project", state.name)
    renderer.kv("Path", state.path)
    renderer.kv("Phase", "completed" if state.completed else state.phase)
    for phase in Phase:
        recorded = statistics.phase(phase)
        if recorded is None:
            continue
        renderer.section(f"Phase {int(phase)} ({phase.label}):")
        elapsed = statistics.phase_time_seconds(phase)
        if elapsed is not None:
            renderer.kv("Time (s)", f"{elapsed:.1f}")
        renderer.stats(recorded.totals)
        if renderer.verbose:
            rows = [
                [path, str(stats.initial_error_count), str(stats.remaining_error_count)]
                for path, stats in sorted(recorded.files.items())
            ]
            renderer.table(["File", "Initial", "Remaining"], rows)
    if not state.completed:
        renderer.next_steps([f"{PROG} run {state.name}"])
    return 0


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _emit_json(payload: Mapping[str, object]) -> None:
    """Emit a JSON payload to stdout with deterministic formatting."""

    print(json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))


def _get_renderer(args: argparse.Namespace) -> CLIRenderer:
    return create_renderer(no_color=bool(args.no_color), verbose=bool(args.verbose))


def _load_settings(args: argparse.Namespace) -> TypeliftSettings:
    overrides: dict[str, object] = {}
    if args.workdir is not None:
        overrides["paths.workdir"] = str(Path(args.workdir).expanduser().resolve())
    if args.log_level is not None:
        overrides["observability.log_level"] = args.log_level
    try:
        return load_settings(args.config_path, cli_overrides=overrides)
    except (ConfigLoadError, ConfigValidationError) as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _load_state(project_arg: str, settings: TypeliftSettings) -> ProjectState:
    try:
        return ProjectState.load(project_arg, workdir=settings.workdir)
    except ProjectStateError as exc:
        raise CLIError(str(exc), exit_code=2) from exc


def _resolve_project(project_arg: str, settings: TypeliftSettings) -> tuple[Path, Phase]:
    """Return the project root and phase without creating state as a side effect."""

    state_file = state_file_for(project_arg, workdir=settings.workdir)
    if state_file.exists():
        state = _load_state(project_arg, settings)
        phase = Phase.FULL_COVERAGE if state.completed else state.current_phase
        return state.path, phase
    candidate = Path(project_arg).expanduser().resolve()
    if not candidate.is_dir():
        raise CLIError(f"project path does not exist: {candidate}", exit_code=2)
    return candidate, Phase.BASELINE


def _project_for(state: ProjectState, settings: TypeliftSettings, *, phase: Phase) -> Project:
    return Project(
        root=state.path,
        phase=phase,
        name=state.name,
        targets=settings.targets,
        lint_enabled=settings.lint_enabled,
        extra_source_roots=settings.extra_source_roots,
    )


__all__ = ["CLIError", "build_aggregator", "build_oracle", "build_parser", "run_cli"]
