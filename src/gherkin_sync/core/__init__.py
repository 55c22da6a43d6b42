"""External collaborators: the git repository and the remote sync service."""

from .client import SyncApiClient
from .git import GitRepository, WorkingTreeStatus

__all__ = ["GitRepository", "SyncApiClient", "WorkingTreeStatus"]
