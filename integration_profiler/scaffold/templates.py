"""Read-only access to the reusable template fragments.

Layout under the template root::

    Utilities/
        doc/                       engagement documents
        pub/                       published material copied verbatim
        config-scripts/<sched>/bin helper scripts for the cluster
        +pctDebug/                 debugging helpers
        helper-fcn/<sched>/        scheduler helper functions (and discover)
        helper-fcn/common/         helper functions shared by all schedulers
        conf-files/                cluster profile config variants
        matlab-files/              MATLAB helper files

Upstream plugin archives are extracted into the scripts path as
``matlab-parallel-<sched>-plugin-main``.
"""
from pathlib import Path
from typing import List, Optional

from integration_profiler.core.errors import ConfigurationError
from integration_profiler.models.cluster import Scheduler

UTILITIES_DIRNAME = "Utilities"

ENGAGEMENT_DOCS = [
    "Getting_Started_With_Serial_And_Parallel_MATLAB.docx",
    "README.txt",
]

PCT_DEBUG_FILES = [
    "ClientJavaLogging.p",
    "ClientJavaMessageHandler.p",
    "Finalize.p",
    "Init.p",
]


class TemplateStore:
    """Resolves fragment locations by scheduler and category."""

    def __init__(self, template_root: Path, scripts_path: Path):
        """Initialize template store.

        Args:
            template_root: Directory that contains ``Utilities/``
            scripts_path: Directory the upstream plugin archives are extracted into
        """
        self.template_root = Path(template_root)
        self.scripts_path = Path(scripts_path)
        self.utilities = self.template_root / UTILITIES_DIRNAME

    def doc_file(self, name: str) -> Path:
        return self.utilities / "doc" / name

    def pub_dir(self) -> Path:
        return self.utilities / "pub"

    def helper_bin_dir(self, scheduler: Scheduler) -> Path:
        return self.utilities / "config-scripts" / scheduler.value / "bin"

    def pct_debug_file(self, name: str) -> Path:
        return self.utilities / "+pctDebug" / name

    def helper_functions_dir(self, scheduler: Optional[Scheduler] = None) -> Path:
        """Scheduler helper functions, or the shared ones when no scheduler is given."""
        return self.utilities / "helper-fcn" / (scheduler.value if scheduler else "common")

    def conf_files_dir(self) -> Path:
        return self.utilities / "conf-files"

    def matlab_files_dir(self) -> Path:
        return self.utilities / "matlab-files"

    def plugin_dir(self, scheduler: Scheduler) -> Path:
        return self.scripts_path / scheduler.plugin_directory

    def missing_plugins(self) -> List[Scheduler]:
        """Schedulers whose extracted plugin directory is absent."""
        return [s for s in Scheduler if not self.plugin_dir(s).is_dir()]

    def verify(self) -> None:
        """Check that the fragment library and every plugin are present.

        Raises:
            ConfigurationError: Naming everything that is missing.
        """
        problems = []
        if not self.utilities.is_dir():
            problems.append(f"template library not found at {self.utilities}")
        for scheduler in self.missing_plugins():
            problems.append(
                f"{self.scripts_path} is missing the integration scripts folder "
                f"'{scheduler.plugin_directory}'"
            )
        if problems:
            raise ConfigurationError("\n".join(problems))
