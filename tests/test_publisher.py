"""Tests for engagement repository publication."""
import shutil
import subprocess
from unittest.mock import Mock

import pytest

from integration_profiler.core.config import ProfilerSettings
from integration_profiler.core.errors import GitError, RemoteError
from integration_profiler.models.engagement import Engagement
from integration_profiler.scaffold.core import ScaffoldManager
from integration_profiler.services.git_manager import GitManager
from integration_profiler.services.publisher import RepoPublisher, RepoState

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")

PROJECT = {
    "id": 7,
    "http_url_to_repo": "https://gitlab.example.com/engagements/Acme.git",
    "web_url": "https://gitlab.example.com/engagements/Acme",
}


class FakeGitLab:
    """In-memory stand-in for the projects API."""

    def __init__(self, clone_url=PROJECT["http_url_to_repo"]):
        self.clone_url = clone_url
        self.projects = {}
        self.variables = []

    def get_project(self, group, name):
        return self.projects.get(name)

    def create_project(self, name, namespace_id):
        project = {"id": len(self.projects) + 1, "http_url_to_repo": self.clone_url}
        self.projects[name] = project
        return project

    def create_variable(self, project_id, key, value):
        self.variables.append((project_id, key, value))
        return {"key": key, "value": value}


@pytest.fixture
def remote_settings(repo_root, scripts_path):
    return ProfilerSettings(
        gitRepoPath=repo_root,
        scriptsPath=scripts_path,
        accessToken="token",
        gitRepoAPIURL="https://gitlab.example.com/api/v4",
        gitGroupID=42,
        gitGroupName="engagements",
        gitUsername="tester",
        gitEmailAddress="tester@example.com",
        submitToRemoteRepo=True,
        downloadScriptsOnLaunch=False,
    )


@pytest.fixture
def git():
    git = Mock(spec=GitManager)
    git.repo_exists.return_value = True
    git.has_remote.return_value = True
    git.commit.return_value = True
    git.push.return_value = True
    return git


class TestLocalOnly:
    """Publishing with submitToRemoteRepo disabled."""

    def test_new_repo_initialized_and_committed(self, settings, git, tmp_path):
        git.repo_exists.return_value = False
        api = Mock()
        publisher = RepoPublisher(settings, git=git, api=api)

        state = publisher.finalize("Acme", tmp_path / "Acme")

        git.init_repo.assert_called_once_with(tmp_path / "Acme", branch="main")
        git.commit.assert_called_once_with(tmp_path / "Acme", "Initial commit.")
        assert state is RepoState.COMMITTED_LOCAL
        assert publisher.history == [RepoState.LOCAL_REPO_INITIALIZED, RepoState.COMMITTED_LOCAL]
        assert api.method_calls == []
        git.push.assert_not_called()

    def test_existing_repo_commits_changes(self, settings, git, tmp_path):
        publisher = RepoPublisher(settings, git=git)

        state = publisher.finalize("Acme", tmp_path / "Acme")

        git.init_repo.assert_not_called()
        git.commit.assert_called_once_with(tmp_path / "Acme", "Updated integration scripts.")
        assert state is RepoState.COMMITTED_LOCAL

    def test_existing_clean_repo_is_noop(self, settings, git, tmp_path):
        git.commit.return_value = False
        publisher = RepoPublisher(settings, git=git)

        publisher.finalize("Acme", tmp_path / "Acme")

        git.stage_all.assert_called_once_with(tmp_path / "Acme")
        assert publisher.history == []


class TestPrepare:
    """Bringing the local copy up to date before materializing."""

    def test_remote_absent(self, remote_settings, git, tmp_path):
        publisher = RepoPublisher(remote_settings, git=git, api=FakeGitLab())

        status = publisher.prepare("Acme", tmp_path / "Acme")

        assert status.exists is False
        assert status.clone_url == "https://gitlab.example.com/engagements/Acme.git"
        assert publisher.state is RepoState.REMOTE_ABSENT
        git.clone_repo.assert_not_called()

    def test_clones_missing_local_copy(self, remote_settings, git, tmp_path):
        api = Mock()
        api.get_project.return_value = PROJECT
        publisher = RepoPublisher(remote_settings, git=git, api=api)

        publisher.prepare("Acme", tmp_path / "Acme")

        api.get_project.assert_called_once_with("engagements", "Acme")
        git.clone_repo.assert_called_once_with(PROJECT["http_url_to_repo"], tmp_path / "Acme")
        assert publisher.state is RepoState.CLONED

    def test_fetches_existing_repo(self, remote_settings, git, tmp_path):
        (tmp_path / "Acme").mkdir()
        api = Mock()
        api.get_project.return_value = PROJECT
        publisher = RepoPublisher(remote_settings, git=git, api=api)

        publisher.prepare("Acme", tmp_path / "Acme")

        git.fetch_all.assert_called_once_with(tmp_path / "Acme")
        assert publisher.state is RepoState.FETCHED

    def test_existing_directory_without_repo(self, remote_settings, git, tmp_path):
        (tmp_path / "Acme").mkdir()
        git.repo_exists.return_value = False
        api = Mock()
        api.get_project.return_value = PROJECT

        with pytest.raises(GitError, match="not a git repository"):
            RepoPublisher(remote_settings, git=git, api=api).prepare("Acme", tmp_path / "Acme")

    def test_api_error_propagates(self, remote_settings, git, tmp_path):
        api = Mock()
        api.get_project.side_effect = RemoteError("GitLab API returned status 500")

        with pytest.raises(RemoteError):
            RepoPublisher(remote_settings, git=git, api=api).prepare("Acme", tmp_path / "Acme")


class TestFinalize:
    """Synchronizing with the remote after materializing."""

    def test_remote_exists_pushes_changes(self, remote_settings, git, tmp_path):
        api = Mock()
        api.get_project.return_value = PROJECT
        publisher = RepoPublisher(remote_settings, git=git, api=api)
        publisher.prepare("Acme", tmp_path / "Acme")

        state = publisher.finalize("Acme", tmp_path / "Acme")

        git.push.assert_called_once_with(tmp_path / "Acme", refspec="HEAD")
        assert state is RepoState.PUSHED

    def test_remote_exists_clean_tree_is_noop(self, remote_settings, git, tmp_path):
        git.commit.return_value = False
        api = Mock()
        api.get_project.return_value = PROJECT
        publisher = RepoPublisher(remote_settings, git=git, api=api)

        state = publisher.finalize("Acme", tmp_path / "Acme")

        git.push.assert_not_called()
        assert state is RepoState.REMOTE_EXISTS

    def test_remote_absent_creates_and_publishes(self, remote_settings, git, tmp_path):
        git.repo_exists.return_value = False
        git.has_remote.return_value = False
        api = FakeGitLab()
        publisher = RepoPublisher(remote_settings, git=git, api=api)

        state = publisher.finalize("Acme", tmp_path / "Acme", abbreviation="ACM")

        assert api.variables == [(1, "abbreviation", "ACM")]
        git.add_remote.assert_called_once_with(tmp_path / "Acme", api.clone_url, "origin")
        git.push.assert_called_with(tmp_path / "Acme", refspec="refs/heads/main:refs/heads/main")
        assert state is RepoState.PUBLISHED
        assert RepoState.PUSHED in publisher.history

    def test_publish_main_already_up_to_date(self, remote_settings, git, tmp_path):
        git.push.return_value = False
        publisher = RepoPublisher(remote_settings, git=git, api=FakeGitLab())

        publisher.publish_main(tmp_path / "Acme")

        assert publisher.history == [RepoState.PUBLISHED]

    def test_project_without_id(self, remote_settings, git, tmp_path):
        git.repo_exists.return_value = False
        api = Mock()
        api.get_project.return_value = None
        api.create_project.return_value = {}

        with pytest.raises(RemoteError, match="did not return an id"):
            RepoPublisher(remote_settings, git=git, api=api).finalize("Acme", tmp_path / "Acme")


def _git(*args, cwd=None):
    return subprocess.run(['git', *args], cwd=cwd, capture_output=True, text=True, check=True).stdout.strip()


@requires_git
class TestPublishRoundTrip:
    """Runs against a local bare repository acting as the remote."""

    @pytest.fixture
    def origin(self, tmp_path):
        origin = tmp_path / "origin.git"
        _git('init', '--bare', str(origin))
        return origin

    @pytest.fixture
    def api(self, origin):
        return FakeGitLab(clone_url=str(origin))

    @pytest.fixture
    def engagement(self, prod_cluster):
        return Engagement(organization="Acme", abbreviation="ACM", clusters=[prod_cluster])

    def _run(self, settings, store, api, engagement):
        git = GitManager(
            username=settings.git_username,
            access_token=settings.access_token,
            author_email=settings.git_email_address,
        )
        publisher = RepoPublisher(settings, git=git, api=api)
        ScaffoldManager(settings, store=store, publisher=publisher).scaffold(engagement)
        return publisher

    def test_second_identical_run_is_a_noop(self, remote_settings, store, origin, api, engagement):
        org_path = remote_settings.engagements_root / "Acme"

        first = self._run(remote_settings, store, api, engagement)
        assert first.state is RepoState.PUBLISHED
        head = _git('rev-parse', 'HEAD', cwd=org_path)
        assert _git('rev-parse', 'refs/heads/main', cwd=origin) == head
        assert api.variables == [(1, "abbreviation", "ACM")]

        second = self._run(remote_settings, store, api, engagement)
        assert RepoState.FETCHED in second.history
        assert RepoState.PUSHED not in second.history
        assert _git('rev-parse', 'HEAD', cwd=org_path) == head
        assert _git('status', '--porcelain', cwd=org_path) == ""
        assert len(api.projects) == 1

    def test_rerun_keeps_commits_pushed_by_others(self, remote_settings, store, origin, api, engagement, tmp_path):
        org_path = remote_settings.engagements_root / "Acme"
        self._run(remote_settings, store, api, engagement)

        colleague = tmp_path / "colleague"
        _git('clone', '--branch', 'main', str(origin), str(colleague))
        (colleague / "COLLEAGUE.md").write_text("notes\n")
        _git('add', 'COLLEAGUE.md', cwd=colleague)
        _git('-c', 'user.name=Colleague', '-c', 'user.email=colleague@example.com',
             'commit', '-m', 'Add notes', cwd=colleague)
        _git('push', 'origin', 'HEAD:main', cwd=colleague)
        colleague_head = _git('rev-parse', 'HEAD', cwd=colleague)

        second = self._run(remote_settings, store, api, engagement)

        assert RepoState.PUSHED not in second.history
        assert (org_path / "COLLEAGUE.md").read_text() == "notes\n"
        assert _git('rev-parse', 'HEAD', cwd=org_path) == colleague_head
        assert _git('rev-parse', 'refs/heads/main', cwd=origin) == colleague_head
        assert "COLLEAGUE.md" in _git('ls-tree', '--name-only', 'main', cwd=origin).splitlines()
