"""Git repository management for engagement repositories."""
import base64
import os
import subprocess
from pathlib import Path
from typing import List, Optional, Tuple

from integration_profiler.core.errors import GitError
from integration_profiler.core.logger import get_logger

logger = get_logger(__name__)

UP_TO_DATE_MARKER = "Everything up-to-date"


class GitManager:
    """Runs git commands against a local working copy.

    Remote operations authenticate with HTTP basic auth passed as a
    per-command header, so the access token is never written to
    ``.git/config``.
    """

    def __init__(
        self,
        username: str = "",
        access_token: str = "",
        author_name: str = "",
        author_email: str = "",
        mock: bool = False,
    ):
        self.username = username
        self.access_token = access_token
        self.author_name = author_name or username
        self.author_email = author_email
        self.mock = mock

    def _auth_args(self) -> List[str]:
        if not self.access_token:
            return []
        credentials = f"{self.username}:{self.access_token}".encode()
        header = base64.b64encode(credentials).decode()
        return ['-c', f'http.extraHeader=Authorization: Basic {header}']

    def _identity_args(self) -> List[str]:
        args = []
        if self.author_name:
            args += ['-c', f'user.name={self.author_name}']
        if self.author_email:
            args += ['-c', f'user.email={self.author_email}']
        return args

    def _run(
        self,
        args: List[str],
        cwd: Optional[Path] = None,
        auth: bool = False,
    ) -> Tuple[bool, str, str]:
        """Run a git command and return success, stdout, stderr."""
        cmd = ['git'] + (self._auth_args() if auth else []) + args
        env = dict(os.environ, GIT_TERMINAL_PROMPT="0")
        try:
            result = subprocess.run(
                cmd,
                cwd=str(cwd) if cwd else None,
                capture_output=True,
                text=True,
                check=True,
                env=env,
            )
            return True, result.stdout.strip(), result.stderr.strip()
        except subprocess.CalledProcessError as e:
            return False, e.stdout.strip() if e.stdout else "", e.stderr.strip() if e.stderr else str(e)
        except FileNotFoundError:
            return False, "", "Git not found. Please install git first."

    def _check(
        self,
        args: List[str],
        action: str,
        cwd: Optional[Path] = None,
        auth: bool = False,
    ) -> Tuple[str, str]:
        """Run a git command, raising GitError on failure."""
        success, stdout, stderr = self._run(args, cwd=cwd, auth=auth)
        if not success:
            logger.error(f"Failed to {action}: {stderr}")
            raise GitError(f"Failed to {action}: {stderr}", stderr=stderr)
        return stdout, stderr

    def repo_exists(self, path: Path) -> bool:
        """Check if a git repository already exists at the given path."""
        return (Path(path) / ".git").exists()

    def init_repo(self, path: Path, branch: str = "main") -> None:
        """Initialize a repository whose HEAD points at ``branch``.

        The branch reference itself is created by the first commit.
        """
        if self.mock:
            logger.info(f"MOCK: Would initialize git repo at {path} on {branch}")
            return

        Path(path).mkdir(parents=True, exist_ok=True)
        self._check(['init'], "initialize git repository", cwd=path)
        self._check(['symbolic-ref', 'HEAD', f'refs/heads/{branch}'], f"point HEAD at {branch}", cwd=path)
        logger.info(f"✓ Initialized git repository at {path}")

    def clone_repo(self, url: str, path: Path) -> None:
        """Clone a repository into ``path``.

        Args:
            url: Repository URL
            path: Destination directory (must not exist yet)
        """
        if self.mock:
            logger.info(f"MOCK: Would clone {url} to {path}")
            return

        logger.info(f"Cloning {url} to {path}")
        self._check(['clone', url, str(path)], "clone repository", auth=True)
        logger.info(f"✓ Successfully cloned repository to {path}")

    def fetch_all(self, path: Path, remote: str = "origin") -> None:
        """Fetch every branch and tag from ``remote``, forcing ref updates.

        Local branch refs, including the checked-out one, are moved to the
        remote's position, and the index and working tree are reset to the
        new HEAD. An up-to-date fetch is not an error.
        """
        if self.mock:
            logger.info(f"MOCK: Would fetch all refs from {remote} in {path}")
            return

        logger.info(f"Fetching updates from {remote}...")
        self._check(
            ['fetch', '--force', '--update-head-ok', '--tags', remote, '+refs/heads/*:refs/heads/*'],
            "fetch updates",
            cwd=path,
            auth=True,
        )
        # --update-head-ok moves the branch ref only
        if self.get_current_commit(path):
            self._check(['reset', '--hard', 'HEAD'], "reset working tree to fetched HEAD", cwd=path)
        logger.info("✓ Fetch completed")

    def stage_all(self, path: Path) -> None:
        """Stage every change in the working tree, including deletions."""
        if self.mock:
            logger.info(f"MOCK: Would stage all changes in {path}")
            return
        self._check(['add', '-A'], "stage changes", cwd=path)

    def is_clean(self, path: Path) -> bool:
        """True if nothing is staged, modified or untracked."""
        if self.mock:
            return True
        stdout, _ = self._check(['status', '--porcelain'], "read repository status", cwd=path)
        return not stdout

    def commit(self, path: Path, message: str) -> bool:
        """Commit staged changes.

        Returns:
            False without committing when there is nothing to commit.
        """
        if self.mock:
            logger.info(f"MOCK: Would commit in {path}: {message}")
            return True

        if self.is_clean(path):
            logger.info("No changes to commit")
            return False

        self._check(self._identity_args() + ['commit', '-m', message], "commit changes", cwd=path)
        logger.info(f"✓ Changes committed: {message}")
        return True

    def has_remote(self, path: Path, name: str = "origin") -> bool:
        if self.mock:
            return True
        success, _, _ = self._run(['remote', 'get-url', name], cwd=path)
        return success

    def add_remote(self, path: Path, url: str, name: str = "origin") -> None:
        if self.mock:
            logger.info(f"MOCK: Would add remote {name} -> {url}")
            return
        self._check(['remote', 'add', name, url], f"add remote '{name}'", cwd=path)

    def push(self, path: Path, refspec: str = "HEAD", remote: str = "origin") -> bool:
        """Push ``refspec`` to ``remote``.

        Returns:
            False if the remote was already up to date, True otherwise.
        """
        if self.mock:
            logger.info(f"MOCK: Would push {refspec} to {remote} from {path}")
            return True

        stdout, stderr = self._check(['push', remote, refspec], f"push {refspec} to {remote}", cwd=path, auth=True)
        if UP_TO_DATE_MARKER in stderr or UP_TO_DATE_MARKER in stdout:
            logger.info(f"{remote} is already up to date")
            return False
        logger.info(f"✓ Pushed {refspec} to {remote}")
        return True

    def get_current_commit(self, path: Path) -> Optional[str]:
        """Get current commit hash from repository, or None before the first commit."""
        if self.mock:
            return "mock-commit-hash-1234567890"

        success, stdout, _ = self._run(['rev-parse', '--verify', '-q', 'HEAD'], cwd=path)
        return stdout if success and stdout else None
