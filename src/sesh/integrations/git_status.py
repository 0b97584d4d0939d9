"""Git branch and dirty state of session working directories."""

from dataclasses import dataclass
from pathlib import Path

from ..utils.logging import LogContext, get_logger

logger = get_logger(__name__, LogContext.INTEGRATION)


@dataclass(frozen=True)
class GitStatus:
    """Branch and working tree state of a repository."""

    branch: str
    dirty: bool

    def __str__(self) -> str:
        return f"{self.branch}*" if self.dirty else self.branch


def read_git_status(path: str | Path | None) -> GitStatus | None:
    """Report the git status of the repository containing ``path``.

    Returns None when the path is not inside a repository, cannot be read, or
    no git executable is installed.
    """
    if not path:
        return None

    # GitPython raises ImportError at import time when git is not installed
    try:
        import git
    except ImportError as e:
        logger.debug("Git status unavailable", path=str(path), error=str(e))
        return None

    try:
        repo = git.Repo(Path(path).expanduser(), search_parent_directories=True)
    except (git.exc.InvalidGitRepositoryError, git.exc.NoSuchPathError):
        return None

    try:
        if repo.head.is_detached:
            branch = "HEAD"
        else:
            branch = repo.active_branch.name
        dirty = repo.is_dirty(untracked_files=True)
    except (
        git.exc.GitCommandError,
        git.exc.GitCommandNotFound,
        ValueError,
        TypeError,
    ) as e:
        # Unborn branches, broken refs and a git binary that went away
        logger.debug("Git status unavailable", path=str(path), error=str(e))
        return None
    finally:
        repo.close()

    return GitStatus(branch=branch, dirty=dirty)
