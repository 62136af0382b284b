"""One ffmpeg transform pass: command construction, progress and failure mapping."""

from __future__ import annotations

import logging
import threading
from pathlib import Path
from typing import Callable

from tonemaster.chain import FilterDirective, render_filter_graph
from tonemaster.domain.policies import RenderPolicy
from tonemaster.errors import EngineError
from tonemaster.infrastructure.engine_locator import EnginePaths
from tonemaster.infrastructure.engine_process import parse_progress_seconds, run_engine

logger = logging.getLogger(__name__)


def build_render_command(
    engine: EnginePaths,
    input_path: Path,
    output_path: Path,
    directives: tuple[FilterDirective, ...],
    policy: RenderPolicy,
) -> list[str]:
    return [
        engine.ffmpeg,
        "-hide_banner",
        "-nostdin",
        "-y",
        "-i",
        str(input_path),
        "-af",
        render_filter_graph(directives),
        *policy.encoder_args(),
        str(output_path),
    ]


def progress_percent(elapsed_seconds: float, duration_seconds: float) -> float:
    """Pass progress, held below 100 until the caller verifies the output."""

    if duration_seconds <= 0:
        return 0.0
    return min(99.0, 100.0 * elapsed_seconds / duration_seconds)


def render_pass(
    engine: EnginePaths,
    input_path: Path,
    output_path: Path,
    directives: tuple[FilterDirective, ...],
    policy: RenderPolicy,
    *,
    duration_seconds: float,
    on_progress: Callable[[float], None] | None = None,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
) -> Path:
    """Run one pass and return ``output_path``.

    Raises ``EngineError`` with the tail of the engine diagnostics on a non-zero exit.
    """

    def _on_line(line: str) -> None:
        elapsed = parse_progress_seconds(line)
        if elapsed is not None and on_progress is not None:
            on_progress(progress_percent(elapsed, duration_seconds))

    command = build_render_command(engine, input_path, output_path, directives, policy)
    result = run_engine(
        command,
        timeout_seconds=timeout_seconds,
        cancel_event=cancel_event,
        on_line=_on_line,
    )
    if result.returncode != 0:
        logger.error(
            "render_pass_failed",
            extra={"policy_id": policy.policy_id, "returncode": result.returncode, "output": str(output_path)},
        )
        raise EngineError(
            f"ffmpeg exited with code {result.returncode} while rendering {output_path.name}.",
            diagnostic_tail=result.stderr_tail,
        )
    return output_path
