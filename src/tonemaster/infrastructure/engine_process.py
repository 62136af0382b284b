"""Subprocess runner for the external media engine.

Both pipes are drained continuously on reader threads so a chatty child can
never block on a full pipe. The calling thread waits on the child with a short
poll interval and checks the cancel event and deadline between waits.
"""

from __future__ import annotations

import codecs
import logging
import re
import subprocess
import threading
import time
from dataclasses import dataclass
from typing import Callable, Sequence

from tonemaster.errors import Cancelled, EngineError, Timeout

logger = logging.getLogger(__name__)

DIAGNOSTIC_TAIL_LINES = 20
TERMINATE_GRACE_SECONDS = 5.0

_PROGRESS_PATTERN = re.compile(r"time=(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


@dataclass(frozen=True, slots=True)
class EngineResult:
    """Captured outcome of one engine invocation."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def stderr_tail(self) -> str:
        lines = [line for line in self.stderr.splitlines() if line.strip()]
        return "\n".join(lines[-DIAGNOSTIC_TAIL_LINES:])


def parse_progress_seconds(line: str) -> float | None:
    """Return elapsed media seconds from an ffmpeg ``time=HH:MM:SS.xx`` line."""

    match = _PROGRESS_PATTERN.search(line)
    if match is None:
        return None
    hours, minutes, seconds = match.groups()
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def _drain(stream, sink: list[str], on_line: Callable[[str], None] | None) -> None:
    # ffmpeg rewrites its stats line with carriage returns, so split on both.
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    for raw in iter(lambda: stream.read1(4096), b""):
        chunk = decoder.decode(raw)
        sink.append(chunk)
        if on_line is None:
            continue
        pending += chunk.replace("\r", "\n")
        *complete, pending = pending.split("\n")
        for line in complete:
            if line:
                on_line(line)
    leftover = decoder.decode(b"", final=True)
    if leftover:
        sink.append(leftover)
        pending += leftover
    if on_line is not None and pending:
        on_line(pending)
    stream.close()


def _stop(process: subprocess.Popen) -> None:
    process.terminate()
    try:
        process.wait(timeout=TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        logger.warning("engine_kill_after_grace", extra={"pid": process.pid})
        process.kill()
        process.wait()


def run_engine(
    command: Sequence[str],
    *,
    timeout_seconds: float | None = None,
    cancel_event: threading.Event | None = None,
    on_line: Callable[[str], None] | None = None,
    poll_interval: float = 0.1,
) -> EngineResult:
    """Run ``command`` to completion and capture its output.

    ``on_line`` receives every stderr line as it arrives. Raises ``Cancelled``
    when ``cancel_event`` is set, ``Timeout`` when ``timeout_seconds`` elapses
    and ``EngineError`` when the executable cannot be launched. A non-zero
    exit is returned to the caller, not raised.
    """

    argv = [str(part) for part in command]
    if cancel_event is not None and cancel_event.is_set():
        raise Cancelled(f"Cancelled before launching {argv[0]}.")

    logger.debug("engine_launch", extra={"argv": argv})
    try:
        process = subprocess.Popen(
            argv,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
        )
    except OSError as exc:
        raise EngineError(f"Could not launch {argv[0]}: {exc}") from exc

    stdout_chunks: list[str] = []
    stderr_chunks: list[str] = []
    readers = [
        threading.Thread(target=_drain, args=(process.stdout, stdout_chunks, None), daemon=True),
        threading.Thread(target=_drain, args=(process.stderr, stderr_chunks, on_line), daemon=True),
    ]
    for reader in readers:
        reader.start()

    deadline = None if timeout_seconds is None else time.monotonic() + timeout_seconds
    while True:
        try:
            process.wait(timeout=poll_interval)
            break
        except subprocess.TimeoutExpired:
            pass
        if cancel_event is not None and cancel_event.is_set():
            _stop(process)
            for reader in readers:
                reader.join()
            raise Cancelled(f"{argv[0]} was cancelled.")
        if deadline is not None and time.monotonic() >= deadline:
            _stop(process)
            for reader in readers:
                reader.join()
            raise Timeout(f"{argv[0]} exceeded {timeout_seconds:.1f}s.")

    for reader in readers:
        reader.join()

    result = EngineResult(
        returncode=process.returncode,
        stdout="".join(stdout_chunks),
        stderr="".join(stderr_chunks),
    )
    if result.returncode != 0:
        logger.debug(
            "engine_nonzero_exit",
            extra={"argv0": argv[0], "returncode": result.returncode, "stderr_tail": result.stderr_tail},
        )
    return result

