"""Tests for the isp command line interface."""
import pytest
from rich.console import Console
from typer.testing import CliRunner

from integration_profiler import cli_scaffold_commands
from integration_profiler.cli import app
from integration_profiler.models.cluster import Scheduler
from integration_profiler.services.downloader import ArchiveDownloader

runner = CliRunner()

PROD_OPTIONS = [
    '--org', 'Acme',
    '--cluster', 'Prod',
    '--scheduler', 'slurm',
    '--workers', '5000',
    '--matlab-root', '/usr/local/MATLAB/R2024a',
    '--host', 'login.acme.org',
]


@pytest.fixture
def settings_file(tmp_path, repo_root, scripts_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv('ISP_SETTINGS', raising=False)
    path = tmp_path / "settings.txt"
    path.write_text(
        f"gitRepoPath = {repo_root}\n"
        f"scriptsPath = {scripts_path}\n"
        "downloadScriptsOnLaunch = false\n"
    )
    return path


def _contact(repo_root):
    return repo_root / "Customer-Engagements" / "Acme" / "first-last"


def test_help_lists_commands():
    result = runner.invoke(app, ['--help'])
    assert result.exit_code == 0
    for command in ('scaffold', 'plan', 'download', 'check-remote'):
        assert command in result.stdout


class TestScaffoldCommand:
    def test_scaffold_from_options(self, settings_file, repo_root):
        result = runner.invoke(app, ['scaffold', '--settings', str(settings_file), '--no-publish', *PROD_OPTIONS])

        assert result.exit_code == 0, result.stdout
        conf = _contact(repo_root) / "scripts" / "slurm" / "matlab" / "prodDesktop.conf"
        assert "NumWorkers = 5000" in conf.read_text()
        assert "Finished!" in result.stdout

    def test_scaffold_from_engagement_file(self, settings_file, repo_root, tmp_path):
        engagement = tmp_path / "acme.yml"
        engagement.write_text(
            "organization: Acme\n"
            "clusters:\n"
            "  - name: Batch\n"
            "    scheduler: kubernetes\n"
            "    submission: cluster\n"
        )

        result = runner.invoke(
            app, ['scaffold', '--settings', str(settings_file), '--no-publish', '-e', str(engagement)]
        )

        assert result.exit_code == 0, result.stdout
        assert (_contact(repo_root) / "scripts" / "kubernetes" / "matlab" / "batchCluster.conf").exists()

    def test_scaffold_commits_locally_in_mock_mode(self, settings_file, repo_root, monkeypatch):
        monkeypatch.setenv('ISP_MOCK', '1')

        result = runner.invoke(app, ['scaffold', '--settings', str(settings_file), *PROD_OPTIONS])

        assert result.exit_code == 0, result.stdout
        assert "MOCK: Would initialize git repo" in result.stdout

    def test_organization_required(self, settings_file):
        result = runner.invoke(app, ['scaffold', '--settings', str(settings_file), '--submission', 'cluster'])

        assert result.exit_code == 1
        assert "Either --engagement or --org is required" in result.stdout

    def test_invalid_workers(self, settings_file):
        options = [o if o != '5000' else '0' for o in PROD_OPTIONS]
        result = runner.invoke(app, ['scaffold', '--settings', str(settings_file), *options])

        assert result.exit_code == 1
        assert "Invalid cluster options" in result.stdout

    def test_missing_plugins_abort_before_materializing(self, settings_file, repo_root, scripts_path):
        (scripts_path / Scheduler.LSF.plugin_directory).rename(scripts_path / "elsewhere")

        result = runner.invoke(app, ['scaffold', '--settings', str(settings_file), '--no-publish', *PROD_OPTIONS])

        assert result.exit_code == 1
        assert "matlab-parallel-lsf-plugin-main" in result.stdout
        assert not _contact(repo_root).exists()

    def test_missing_settings_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ['scaffold', '--settings', str(tmp_path / "nope.txt"), *PROD_OPTIONS])

        assert result.exit_code == 1
        assert "not found" in result.stdout

    def test_invalid_settings_file(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        path = tmp_path / "settings.txt"
        path.write_text("favouriteColour = blue\n")

        result = runner.invoke(app, ['scaffold', '--settings', str(path), *PROD_OPTIONS])

        assert result.exit_code == 1
        assert "unrecognized setting" in result.stdout


class TestPlanCommand:
    @pytest.fixture(autouse=True)
    def wide_console(self, monkeypatch):
        monkeypatch.setattr(cli_scaffold_commands, "console", Console(width=200))

    def test_plan_for_bare_scheduler(self, settings_file):
        result = runner.invoke(
            app, ['plan', '--settings', str(settings_file), '--scheduler', 'awsbatch', '--cluster', 'Batch']
        )

        assert result.exit_code == 0, result.stdout
        assert "helper_bin" in result.stdout
        assert "skip" in result.stdout
        assert "mpiLibConf.m" in result.stdout

    def test_plan_invalid_cluster(self, settings_file):
        result = runner.invoke(app, ['plan', '--settings', str(settings_file), '--submission', 'desktop'])

        assert result.exit_code == 1
        assert "matlab_root" in result.stdout


class TestRemoteCommands:
    def test_download_subset(self, settings_file, monkeypatch, scripts_path):
        requested = []

        def fake_download_all(self, schedulers=None):
            requested.append(schedulers)
            return [scripts_path / Scheduler.PBS.plugin_directory]

        monkeypatch.setattr(ArchiveDownloader, 'download_all', fake_download_all)

        result = runner.invoke(app, ['download', 'pbs', '--settings', str(settings_file)])

        assert result.exit_code == 0, result.stdout
        assert requested == [[Scheduler.PBS]]
        assert "matlab-parallel-pbs-plugin-main" in result.stdout

    def test_check_remote_requires_api_settings(self, settings_file):
        result = runner.invoke(app, ['check-remote', 'Acme', '--settings', str(settings_file)])

        assert result.exit_code == 1
        assert "gitRepoAPIURL" in result.stdout
