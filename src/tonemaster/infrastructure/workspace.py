"""Per-job workspace directories and their retention sweep."""

from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path

logger = logging.getLogger(__name__)


def create_job_workspace(root: Path, job_id: str) -> Path:
    workspace = root / job_id
    workspace.mkdir(parents=True, exist_ok=False)
    return workspace


def stage_file(source: Path, workspace: Path, prefix: str) -> Path:
    """Copy ``source`` into the workspace as ``<prefix>_<name>``."""

    staged = workspace / f"{prefix}_{source.name}"
    shutil.copyfile(source, staged)
    return staged


def clear_workspace(workspace: Path) -> int:
    """Remove every entry inside ``workspace`` and keep the directory itself.

    Deletion is best effort: an entry that cannot be removed is logged and
    skipped. Returns the number of entries removed.
    """

    try:
        entries = list(workspace.iterdir())
    except FileNotFoundError:
        return 0
    except OSError as exc:
        logger.warning("workspace_clear_failed", extra={"workspace": str(workspace), "error": str(exc)})
        return 0

    removed = 0
    for entry in entries:
        try:
            if entry.is_dir() and not entry.is_symlink():
                shutil.rmtree(entry)
            else:
                entry.unlink()
        except FileNotFoundError:
            continue
        except OSError as exc:
            logger.warning("workspace_entry_not_removed", extra={"entry": str(entry), "error": str(exc)})
            continue
        removed += 1
    return removed


def sweep_expired_workspaces(root: Path, max_age_seconds: float, now: float | None = None) -> list[Path]:
    """Delete job directories under ``root`` whose mtime is older than ``max_age_seconds``."""

    if not root.is_dir():
        return []
    current = time.time() if now is None else now
    removed: list[Path] = []
    for entry in sorted(root.iterdir()):
        if not entry.is_dir():
            continue
        age = current - entry.stat().st_mtime
        if age <= max_age_seconds:
            continue
        try:
            shutil.rmtree(entry)
        except OSError as exc:
            logger.warning("workspace_sweep_failed", extra={"workspace": str(entry), "error": str(exc)})
            continue
        removed.append(entry)
    if removed:
        logger.info("workspace_sweep_completed", extra={"root": str(root), "removed": len(removed)})
    return removed
