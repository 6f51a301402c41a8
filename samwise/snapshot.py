"""Snapshot source: the working tree's pending changes as `git diff` text."""

from __future__ import annotations

import subprocess
from typing import Protocol

from .errors import DiffError

DIFF_ARGS = ("diff", "--minimal")


class SnapshotSource(Protocol):
    """Anything that can report the current change-set as text."""

    def snapshot(self) -> str: ...


class GitDiffSource:
    """Runs ``git diff --minimal`` in a working directory.

    An empty string means there are no unstaged changes.
    """

    def __init__(self, working_dir: str | None = None) -> None:
        self._working_dir = working_dir

    def snapshot(self) -> str:
        try:
            proc = subprocess.run(
                ["git", *DIFF_ARGS],
                cwd=self._working_dir,
                capture_output=True,
                check=False,
            )
        except FileNotFoundError as exc:
            raise DiffError("failed to spawn git diff: git is not installed or not on PATH") from exc
        except OSError as exc:
            raise DiffError(f"failed to spawn git diff: {exc}") from exc

        if proc.returncode != 0:
            stderr = proc.stderr.decode("utf-8", errors="replace").strip()
            raise DiffError(f"git diff failed (rc={proc.returncode}): {stderr}")

        try:
            return proc.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DiffError(f"failed to parse git diff UTF-8: {exc}") from exc
