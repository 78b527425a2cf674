"""Exception hierarchy for the scaffolding pipeline.

Every error below is fatal for the current run. Idempotent no-ops (a clean
worktree, an up-to-date push) are never raised as errors.
"""


class ProfilerError(Exception):
    """Base class for all profiler failures."""
    pass


class ConfigurationError(ProfilerError):
    """Raised when settings or the engagement description are invalid."""
    pass


class DownloadError(ProfilerError):
    """Raised when a template archive cannot be fetched or extracted."""
    pass


class RemoteError(ProfilerError):
    """Raised when the hosting API answers with an unexpected status."""
    pass


class GitError(ProfilerError):
    """Raised when a git command fails."""

    def __init__(self, message: str, stderr: str = ""):
        super().__init__(message)
        self.stderr = stderr


class MaterializeError(ProfilerError):
    """Raised when a template file or directory cannot be copied."""
    pass


class PruneError(ProfilerError):
    """Raised when an inapplicable artifact cannot be removed."""
    pass


class TemplateError(ProfilerError):
    """Raised when a config file cannot be rewritten or renamed."""
    pass


class CancelledError(ProfilerError):
    """Raised when the run was interrupted by the user."""
    pass
