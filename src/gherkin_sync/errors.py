"""Exception hierarchy for gherkin-sync.

Only ``ProcessingError`` subclasses are recovered locally (per file, by the
change processor).  Every other error propagates to the orchestrator,
which marks the run as failed and re-raises.
"""

from __future__ import annotations


class GherkinSyncError(Exception):
    """Base class for all gherkin-sync errors."""


class ConfigurationError(GherkinSyncError, ValueError):
    """Missing or invalid configuration (token, project id, repository)."""


class ProcessingError(GherkinSyncError):
    """A single feature file could not be processed.

    Args:
        message: Human-readable description of the failure.
        path: Repository path of the file involved, if known.
    """

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message)
        self.path = path


class ParseError(ProcessingError):
    """The Gherkin parser rejected a file's content."""


class FetchError(ProcessingError):
    """The VCS could not produce a file at the requested revision."""


class GitError(GherkinSyncError):
    """A repository-level git command failed."""


class ApiError(GherkinSyncError):
    """The remote service was unreachable or answered with a non-2xx status.

    Args:
        message: Error message, verbatim from the service when it sent one.
        status_code: HTTP status code, or ``None`` for transport failures.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PayloadWriteError(GherkinSyncError):
    """The ``--payload-file`` copy of the delta could not be written."""
