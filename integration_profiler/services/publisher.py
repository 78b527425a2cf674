"""Publication of engagement repositories.

One repository per organization lives at
``<gitRepoPath>/Customer-Engagements/<org>``. The publisher moves it through::

    NO_LOCAL_REPO -> LOCAL_REPO_INITIALIZED -> REMOTE_UNKNOWN
        -> REMOTE_EXISTS | REMOTE_ABSENT
        -> CLONED | FETCHED | COMMITTED_LOCAL -> PUSHED -> PUBLISHED

``prepare`` runs before the engagement tree is materialized (so an existing
remote is cloned or fetched first); ``finalize`` runs once afterwards.
"""
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import List, Optional

from integration_profiler.core.config import ProfilerSettings
from integration_profiler.core.errors import GitError, RemoteError
from integration_profiler.core.logger import get_logger
from integration_profiler.services.git_manager import GitManager
from integration_profiler.services.gitlab_api import GitLabClient

logger = get_logger(__name__)

MAIN_BRANCH = "main"
INITIAL_COMMIT_MESSAGE = "Initial commit."
ABBREVIATION_VARIABLE = "abbreviation"


class RepoState(Enum):
    """Where an engagement repository is in its publication lifecycle."""
    NO_LOCAL_REPO = "no_local_repo"
    LOCAL_REPO_INITIALIZED = "local_repo_initialized"
    REMOTE_UNKNOWN = "remote_unknown"
    REMOTE_EXISTS = "remote_exists"
    REMOTE_ABSENT = "remote_absent"
    CLONED = "cloned"
    FETCHED = "fetched"
    COMMITTED_LOCAL = "committed_local"
    PUSHED = "pushed"
    PUBLISHED = "published"


@dataclass
class RemoteStatus:
    """Result of looking up the organization's remote project."""
    exists: bool
    clone_url: str
    project_id: Optional[int] = None
    web_url: str = ""


class RepoPublisher:
    """Keeps the local engagement repository in step with the remote project."""

    def __init__(
        self,
        settings: ProfilerSettings,
        git: Optional[GitManager] = None,
        api: Optional[GitLabClient] = None,
    ):
        self.settings = settings
        self.git = git or GitManager(
            username=settings.git_username,
            access_token=settings.access_token,
            author_email=settings.git_email_address,
        )
        self._api = api
        self.remote: Optional[RemoteStatus] = None
        self.history: List[RepoState] = []

    @property
    def api(self) -> GitLabClient:
        if self._api is None:
            self._api = GitLabClient(self.settings.api_root, self.settings.access_token)
        return self._api

    @property
    def state(self) -> RepoState:
        return self.history[-1] if self.history else RepoState.NO_LOCAL_REPO

    def _transition(self, state: RepoState) -> None:
        logger.debug(f"Repository state: {self.state.value} -> {state.value}")
        self.history.append(state)

    def clone_url_for(self, organization: str) -> str:
        """Clone URL derived from the API host, group and organization."""
        return f"{self.settings.web_base}/{self.settings.git_group_name}/{organization}.git"

    def check_remote(self, organization: str) -> RemoteStatus:
        """Ask the hosting API whether the organization's project exists.

        Raises:
            RemoteError: On any status other than 200 or 404.
        """
        self._transition(RepoState.REMOTE_UNKNOWN)
        project = self.api.get_project(self.settings.git_group_name, organization)

        if project is None:
            logger.info("The project does not exist.")
            self.remote = RemoteStatus(exists=False, clone_url=self.clone_url_for(organization))
            self._transition(RepoState.REMOTE_ABSENT)
        else:
            logger.info("Project exists.")
            self.remote = RemoteStatus(
                exists=True,
                clone_url=project.get("http_url_to_repo") or self.clone_url_for(organization),
                project_id=project.get("id"),
                web_url=project.get("web_url", ""),
            )
            self._transition(RepoState.REMOTE_EXISTS)
        return self.remote

    def prepare(self, organization: str, org_path: Path) -> RemoteStatus:
        """Check the remote and bring the local copy up to date with it.

        Raises:
            GitError: If the local path exists but is not a repository, or a
                clone/fetch fails.
        """
        org_path = Path(org_path)
        status = self.check_remote(organization)
        if not status.exists:
            return status

        if not org_path.exists():
            logger.info("Local repository path does not exist. Cloning repository...")
            org_path.parent.mkdir(parents=True, exist_ok=True)
            self.git.clone_repo(status.clone_url, org_path)
            self._transition(RepoState.CLONED)
        elif self.git.repo_exists(org_path):
            self.git.fetch_all(org_path)
            self._transition(RepoState.FETCHED)
        else:
            raise GitError(
                f"{org_path} exists but is not a git repository; "
                f"move it aside so the remote project can be cloned"
            )
        return status

    def finalize(self, organization: str, org_path: Path, abbreviation: str = "") -> RepoState:
        """Commit the materialized tree and synchronize with the remote.

        Returns:
            The final repository state.
        """
        org_path = Path(org_path)
        created_locally = False

        if not self.git.repo_exists(org_path):
            self._init_local(org_path)
            created_locally = True
        else:
            logger.info(".git directory already exists.")

        if not self.settings.submit_to_remote_repo:
            if not created_locally:
                self._commit_local(org_path)
            return self.state

        status = self.remote or self.check_remote(organization)

        if status.exists:
            self._commit_and_push(org_path)
            return self.state

        if not created_locally:
            self._commit_local(org_path)
        project = self._create_remote(organization, abbreviation)
        self._ensure_origin(org_path, project.get("http_url_to_repo") or status.clone_url)
        self.publish_main(org_path)
        return self.state

    def _init_local(self, org_path: Path) -> None:
        self.git.init_repo(org_path, branch=MAIN_BRANCH)
        self._transition(RepoState.LOCAL_REPO_INITIALIZED)
        self.git.stage_all(org_path)
        if self.git.commit(org_path, INITIAL_COMMIT_MESSAGE):
            self._transition(RepoState.COMMITTED_LOCAL)

    def _commit_local(self, org_path: Path) -> None:
        self.git.stage_all(org_path)
        if self.git.commit(org_path, self.settings.git_existing_repo_commit_message):
            self._transition(RepoState.COMMITTED_LOCAL)

    def _commit_and_push(self, org_path: Path) -> None:
        """Stage, commit and push; a clean worktree is a successful no-op."""
        self._ensure_origin(org_path, self.remote.clone_url)
        self.git.stage_all(org_path)
        if not self.git.commit(org_path, self.settings.git_existing_repo_commit_message):
            logger.info("No changes to commit remotely.")
            return
        self._transition(RepoState.COMMITTED_LOCAL)
        self.git.push(org_path, refspec="HEAD")
        self._transition(RepoState.PUSHED)

    def _create_remote(self, organization: str, abbreviation: str) -> dict:
        project = self.api.create_project(organization, self.settings.git_group_id)
        project_id = project.get("id")
        if project_id is None:
            raise RemoteError(f"GitLab did not return an id for project '{organization}'")
        self.api.create_variable(project_id, ABBREVIATION_VARIABLE, abbreviation)
        self.remote = RemoteStatus(
            exists=True,
            clone_url=project.get("http_url_to_repo") or self.clone_url_for(organization),
            project_id=project_id,
            web_url=project.get("web_url", ""),
        )
        return project

    def _ensure_origin(self, org_path: Path, url: str) -> None:
        if not self.git.has_remote(org_path, "origin"):
            self.git.add_remote(org_path, url, "origin")

    def publish_main(self, org_path: Path) -> None:
        """Push ``main`` to ``origin/main``; already up to date counts as success."""
        logger.info(f"Preparing to publish '{MAIN_BRANCH}' branch")
        refspec = f"refs/heads/{MAIN_BRANCH}:refs/heads/{MAIN_BRANCH}"
        if self.git.push(org_path, refspec=refspec):
            self._transition(RepoState.PUSHED)
        else:
            logger.info(f"The '{MAIN_BRANCH}' branch is already up to date with the remote.")
        self._transition(RepoState.PUBLISHED)
