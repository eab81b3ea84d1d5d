"""
Python toolchain bootstrap.

Makes sure a Python 3 interpreter and pip exist, prepares the user's
Python environment (build dependencies, local bin directory, PATH) and
verifies the installed instrumentation tools afterwards.
"""

from __future__ import annotations

import logging
import os
from dataclasses import replace
from pathlib import Path
from typing import Optional

from fridasetup.exceptions import ToolchainError
from fridasetup.host.platform import PlatformAdapter
from fridasetup.host.prober import CapabilityProber
from fridasetup.host.runner import CommandRunner
from fridasetup.host.shell_profile import ENVIRONMENT_MARKER, ShellProfile
from fridasetup.models import HostCapabilities, PackageManager

logger = logging.getLogger(__name__)


def prepend_path(directory: Path, environ=None) -> None:
    """Put ``directory`` first on PATH for this process if it isn't there yet."""
    environ = os.environ if environ is None else environ
    current = environ.get("PATH", "")
    entries = current.split(os.pathsep) if current else []
    if str(directory) not in entries:
        environ["PATH"] = os.pathsep.join([str(directory), *entries])


class PythonToolchain:
    """Bootstraps Python and pip on the host."""

    def __init__(
        self,
        runner: CommandRunner,
        adapter: PlatformAdapter,
        prober: CapabilityProber,
        profile: ShellProfile,
        environ=None,
    ):
        self.runner = runner
        self.adapter = adapter
        self.prober = prober
        self.profile = profile
        self.environ = os.environ if environ is None else environ

    def _install(self, manager: PackageManager, packages: list[str]) -> bool:
        commands = self.adapter.install_commands(manager, packages)
        if not commands:
            return False
        logger.info("Installing %s using %s...", " ".join(packages), manager.value)
        for command in commands:
            result = self.runner.run(command)
            if not result.success:
                logger.warning("%s failed: %s", " ".join(command), result.stderr.strip())
                return False
        return True

    def ensure_python(self, capabilities: HostCapabilities) -> HostCapabilities:
        """
        Install Python 3 through the package manager if it is missing.

        Raises:
            ToolchainError: If Python 3 is still unavailable afterwards.
        """
        if capabilities.has_python:
            logger.info("Found Python: %s", capabilities.python_version)
            return capabilities

        logger.warning("Python 3 not found. Installing...")
        manager = capabilities.package_manager
        packages = self.adapter.python_packages(manager)
        if not packages or not self._install(manager, packages):
            raise ToolchainError(
                f"Could not install Python using package manager '{manager.value}'",
                tool="python",
                hint="Please install Python 3 manually and re-run the setup.",
            )

        capabilities = self.prober.reprobe(capabilities, python=True, pip=True)
        if not capabilities.has_python:
            raise ToolchainError(
                "Python installation failed!",
                tool="python",
                hint="Please install Python 3 manually and re-run the setup.",
            )
        logger.info("Python installed: %s", capabilities.python_version)
        return capabilities

    def ensure_pip(self, capabilities: HostCapabilities) -> HostCapabilities:
        """Make pip available, falling back to ``python -m pip``."""
        if capabilities.has_pip:
            logger.info("Found pip: %s", " ".join(capabilities.pip))
            return capabilities

        logger.warning("pip not found. Installing...")
        python = capabilities.python
        result = self.runner.run([*python, "-m", "ensurepip", "--upgrade"])
        if not result.success:
            manager = capabilities.package_manager
            self._install(manager, self.adapter.pip_packages(manager))

        capabilities = self.prober.reprobe(capabilities, pip=True)
        if not capabilities.has_pip:
            logger.warning("pip still not detected, using '%s -m pip'", " ".join(python))
            capabilities = replace(capabilities, pip=(*python, "-m", "pip"))
        return capabilities

    def user_scripts_dir(self, capabilities: HostCapabilities) -> Optional[Path]:
        """Where ``pip install --user`` puts console scripts."""
        if not capabilities.has_python:
            return None
        result = self.runner.run(self.adapter.user_scripts_query(capabilities.python))
        if not result.success or not result.stdout.strip():
            return None
        return self.adapter.user_scripts_dir(result.stdout)

    def prepare_environment(self, capabilities: HostCapabilities) -> list[str]:
        """
        Set up the user's Python environment.

        Returns:
            Human-readable details of what was done.
        """
        details: list[str] = []
        manager = capabilities.package_manager

        dependencies = self.adapter.build_dependencies(manager)
        if dependencies:
            if self._install(manager, dependencies):
                details.append(f"Build dependencies installed ({manager.value})")
            else:
                logger.warning("Could not install build dependencies; wheels may fail to build")
        elif manager == PackageManager.UNKNOWN:
            logger.warning("No package manager detected; skipping build dependencies")

        local_bin = self.adapter.local_bin_dir
        if not local_bin.is_dir():
            local_bin.mkdir(parents=True, exist_ok=True)
            details.append(f"Created {local_bin}")

        scripts_dir = self.user_scripts_dir(capabilities)
        extra_dirs = [scripts_dir] if scripts_dir and scripts_dir != local_bin else []

        block = self.adapter.environment_block(capabilities.python or (), extra_dirs)
        if self.profile.ensure_block(ENVIRONMENT_MARKER, block):
            details.append(f"Python environment added to {self.profile.path}")

        prepend_path(local_bin, self.environ)
        if scripts_dir and scripts_dir.is_dir():
            prepend_path(scripts_dir, self.environ)

        logger.info("Upgrading pip...")
        pip = list(capabilities.pip or ())
        if pip:
            upgraded = self.runner.run([*pip, "install", "--user", "--upgrade", "pip"])
            if not upgraded.success:
                upgraded = self.runner.run([*pip, "install", "--upgrade", "pip"])
            if not upgraded.success:
                logger.warning("pip upgrade failed; continuing with the installed version")

        return details

    def verify_installation(
        self,
        capabilities: HostCapabilities,
        tool: str = "frida",
    ) -> Optional[str]:
        """
        Locate ``tool`` and report its version.

        Returns:
            The version string (or the path when the version is unreadable),
            None if the tool cannot be found.
        """
        logger.info("Verifying %s installation...", tool)

        executable = self.runner.which(tool)
        if executable is None:
            name = f"{tool}{self.adapter.executable_suffix}"
            locations = [self.adapter.local_bin_dir / name]
            scripts_dir = self.user_scripts_dir(capabilities)
            if scripts_dir:
                locations.append(scripts_dir / name)
            locations.append(Path("/usr/local/bin") / name)
            for location in locations:
                if location.is_file() and os.access(location, os.X_OK):
                    executable = str(location)
                    break

        if executable is None:
            logger.warning("%s command not found in PATH", tool)
            if self.profile.available:
                logger.warning("You may need to restart your terminal or run: source %s", self.profile.path)
            return None

        result = self.runner.run([executable, "--version"])
        version = result.stdout.strip() if result.success else ""
        logger.info("%s installed: %s", tool, version or executable)
        return version or executable
