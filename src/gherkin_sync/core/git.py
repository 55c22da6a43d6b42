"""Read-only access to the git repository being synchronised.

Every query shells out to the ``git`` executable; nothing here ever
writes to the repository or the working tree.
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass, field
from pathlib import Path

from ..errors import FetchError, GitError

logger = logging.getLogger(__name__)

GIT_TIMEOUT = 30


@dataclass(frozen=True)
class WorkingTreeStatus:
    """Uncommitted paths, as reported by ``git status --porcelain``."""

    staged: list[str] = field(default_factory=list)
    modified: list[str] = field(default_factory=list)
    untracked: list[str] = field(default_factory=list)

    def matching(self, extension: str) -> list[str]:
        """Unique paths ending with *extension*, staged first."""
        seen: list[str] = []
        for path in [*self.staged, *self.modified, *self.untracked]:
            if path.endswith(extension) and path not in seen:
                seen.append(path)
        return seen


class GitRepository:
    """Thin wrapper over the git CLI for one repository.

    Args:
        root: Directory inside the repository; commands run from here.
    """

    def __init__(self, root: Path | str = ".") -> None:
        self.root = Path(root)

    def _run(self, *args: str, binary: bool = False) -> subprocess.CompletedProcess:
        cmd = ["git", "-c", "core.quotepath=off", *args]
        logger.debug("Running %s", " ".join(cmd))
        # binary=True leaves decoding to the caller.
        encoding = None if binary else "utf-8"
        errors = None if binary else "replace"
        try:
            return subprocess.run(
                cmd,
                cwd=str(self.root),
                capture_output=True,
                text=not binary,
                encoding=encoding,
                errors=errors,
                timeout=GIT_TIMEOUT,
            )
        except FileNotFoundError as exc:
            raise GitError("git executable not found on PATH") from exc
        except subprocess.TimeoutExpired as exc:
            raise GitError(f"git {args[0]} timed out after {GIT_TIMEOUT}s") from exc

    def _output(self, *args: str) -> str:
        result = self._run(*args)
        if result.returncode != 0:
            raise GitError(
                f"git {args[0]} failed: {result.stderr.strip() or result.returncode}"
            )
        return result.stdout

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def is_repository(self) -> bool:
        try:
            result = self._run("rev-parse", "--is-inside-work-tree")
        except GitError:
            return False
        return result.returncode == 0 and result.stdout.strip() == "true"

    def head_revision(self) -> str:
        return self._output("rev-parse", "HEAD").strip()

    def diff_name_status(self, from_revision: str, to_revision: str) -> list[str]:
        """Return ``--name-status`` records between two revisions, renames detected."""
        output = self._output(
            "diff",
            "--name-status",
            "--find-renames",
            f"{from_revision}..{to_revision}",
        )
        return [line for line in output.splitlines() if line.strip()]

    def list_tracked_files(self, revision: str) -> list[str]:
        output = self._output("ls-tree", "-r", "--name-only", revision)
        return [line for line in output.splitlines() if line.strip()]

    def file_content_at(self, revision: str, path: str) -> str:
        """Return the content of *path* at *revision*.

        Raises:
            FetchError: If the path does not exist at that revision, or its
                content is not valid UTF-8.
        """
        result = self._run("show", f"{revision}:{path}", binary=True)
        if result.returncode != 0:
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise FetchError(
                f"Could not read {path} at {revision}: {stderr}", path=path
            )
        try:
            return result.stdout.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise FetchError(
                f"Could not read {path} at {revision}: not valid UTF-8 ({exc.reason})",
                path=path,
            ) from exc

    def working_tree_status(self) -> WorkingTreeStatus:
        """Split ``git status --porcelain`` output into staged/modified/untracked."""
        output = self._output("status", "--porcelain", "--untracked-files=all")
        staged: list[str] = []
        modified: list[str] = []
        untracked: list[str] = []

        for line in output.splitlines():
            if len(line) < 4:
                continue
            index, worktree, path = line[0], line[1], line[3:]
            if " -> " in path:
                path = path.split(" -> ", 1)[1]
            if index == "?" and worktree == "?":
                untracked.append(path)
                continue
            if index not in (" ", "?"):
                staged.append(path)
            if worktree not in (" ", "?"):
                modified.append(path)

        return WorkingTreeStatus(
            staged=staged, modified=modified, untracked=untracked
        )
