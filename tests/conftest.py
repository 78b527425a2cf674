"""Shared test fixtures for Integration Profiler tests."""
import pytest
from pathlib import Path

from integration_profiler.core.config import ProfilerSettings
from integration_profiler.models.cluster import PARTITION_TOKEN, QUEUE_TOKEN, ClusterSpec, Scheduler, SubmissionType
from integration_profiler.scaffold.templates import ENGAGEMENT_DOCS, PCT_DEBUG_FILES, TemplateStore
from integration_profiler.scaffold.templater import HOST_TOKEN, MATLAB_ROOT_TOKEN, SHARED_FS_TOKEN, WORKERS_TOKEN

DESKTOP_CONF = "\n".join([
    "# Desktop profile for cluster_name",
    "Name = profile_name",
    WORKERS_TOKEN,
    MATLAB_ROOT_TOKEN,
    HOST_TOKEN,
    SHARED_FS_TOKEN,
    "",
    QUEUE_TOKEN,
    PARTITION_TOKEN,
]) + "\n"

CLUSTER_CONF = "\n".join([
    "# Cluster profile for cluster_name",
    "Name = profile_name",
    WORKERS_TOKEN,
    MATLAB_ROOT_TOKEN,
    HOST_TOKEN,
    QUEUE_TOKEN,
    PARTITION_TOKEN,
]) + "\n"


def _write(path: Path, content: str = "") -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


def build_template_library(root: Path) -> Path:
    """Create a small but complete Utilities tree under ``root``."""
    utilities = root / "Utilities"
    for name in ENGAGEMENT_DOCS:
        _write(utilities / "doc" / name, f"doc {name}\n")
    _write(utilities / "pub" / "cheatsheet.pdf", "pub\n")
    _write(utilities / "pub" / "examples" / "parforDemo.m", "parfor\n")

    for scheduler in Scheduler:
        if scheduler.has_helper_bin:
            _write(utilities / "config-scripts" / scheduler.value / "bin" / "submit.sh", "#!/bin/sh\n")
        if scheduler.has_discover_script:
            _write(utilities / "helper-fcn" / scheduler.value / "discover" / "discoverSched.m", "% discover\n")
            _write(utilities / "helper-fcn" / scheduler.value / "clusterFeatures.m", "% features\n")

    for name in PCT_DEBUG_FILES:
        _write(utilities / "+pctDebug" / name, "P-file\n")

    _write(utilities / "helper-fcn" / "common" / "getDebugLog.m", "% debug log\n")

    conf = utilities / "conf-files"
    _write(conf / "hpcDesktop.conf", DESKTOP_CONF)
    _write(conf / "hpcCluster.conf", CLUSTER_CONF)
    _write(conf / "hpcRemoteDesktop.conf", DESKTOP_CONF)
    _write(conf / "hpcRemoteCluster.conf", CLUSTER_CONF)
    _write(conf / "mpiLibConf.m", "% mpi\n")
    _write(conf / "mdcs.rc", "legacy\n")

    _write(utilities / "matlab-files" / "configCluster.m", "% configure\n")
    _write(utilities / "matlab-files" / "licenseCheck.m", "% legacy\n")
    return utilities


def build_plugins(scripts_path: Path) -> None:
    """Create an extracted plugin directory for every scheduler."""
    for scheduler in Scheduler:
        plugin = scripts_path / scheduler.plugin_directory
        _write(plugin / "independentSubmitFcn.m", f"% {scheduler.value} submit\n")
        _write(plugin / "discover", "discover\n")
        _write(plugin / "README.md", f"{scheduler.value} plugin\n")


@pytest.fixture
def repo_root(tmp_path):
    """Directory acting as gitRepoPath, holding the template library."""
    root = tmp_path / "repo"
    root.mkdir()
    build_template_library(root)
    return root


@pytest.fixture
def scripts_path(tmp_path):
    """Directory holding the extracted plugin archives."""
    path = tmp_path / "scripts"
    path.mkdir()
    build_plugins(path)
    return path


@pytest.fixture
def settings(repo_root, scripts_path):
    """Local-only settings pointing at the fixture trees."""
    return ProfilerSettings(
        gitRepoPath=repo_root,
        scriptsPath=scripts_path,
        gitUsername="tester",
        gitEmailAddress="tester@example.com",
        downloadScriptsOnLaunch=False,
    )


@pytest.fixture
def store(repo_root, scripts_path):
    return TemplateStore(repo_root, scripts_path)


@pytest.fixture
def prod_cluster():
    """The Acme production cluster: slurm, both submission types."""
    return ClusterSpec(
        name="Prod",
        scheduler=Scheduler.SLURM,
        submission=SubmissionType.BOTH,
        workers=5000,
        matlab_root="/usr/local/MATLAB/R2024a",
        hostname="login.acme.org",
    )
