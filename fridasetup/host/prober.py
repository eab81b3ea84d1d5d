"""
Capability Prober

Finds which package manager, Python, pip, archive tool and adb the host
offers by running each candidate's version/help command in a fixed
priority order. Probing never raises; a missing tool is reported as
``None`` (or ``PackageManager.UNKNOWN``) for the caller to handle.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Optional

from fridasetup.host.platform import PlatformAdapter
from fridasetup.host.runner import CommandRunner
from fridasetup.models import HostCapabilities, PackageManager

logger = logging.getLogger(__name__)

PROBE_TIMEOUT = 15


class CapabilityProber:
    """Builds HostCapabilities for one platform."""

    def __init__(self, runner: CommandRunner, adapter: PlatformAdapter):
        self.runner = runner
        self.adapter = adapter

    def probe(self) -> HostCapabilities:
        """Probe every category and return an immutable snapshot."""
        python, python_version = self.probe_python()
        return HostCapabilities(
            package_manager=self.probe_package_manager(),
            python=python,
            python_version=python_version,
            pip=self.probe_pip(python),
            archive_tool=self.probe_archive_tool(),
            adb=self.probe_adb(),
        )

    def reprobe(self, capabilities: HostCapabilities, **fields) -> HostCapabilities:
        """Return a copy of ``capabilities`` with the named categories re-probed."""
        updates = {}
        if fields.get("python"):
            updates["python"], updates["python_version"] = self.probe_python()
        if fields.get("pip"):
            updates["pip"] = self.probe_pip(updates.get("python", capabilities.python))
        if fields.get("archive_tool"):
            updates["archive_tool"] = self.probe_archive_tool()
        if fields.get("adb"):
            updates["adb"] = self.probe_adb()
        return replace(capabilities, **updates)

    def _responds(self, command: list[str]) -> bool:
        return self.runner.run(command, timeout=PROBE_TIMEOUT).success

    def probe_package_manager(self) -> PackageManager:
        for manager, command in self.adapter.package_manager_probes():
            if self._responds(command):
                logger.debug("Package manager: %s", manager.value)
                return manager
        return PackageManager.UNKNOWN

    def probe_python(self) -> tuple[Optional[tuple[str, ...]], str]:
        for candidate in self.adapter.python_candidates():
            result = self.runner.run([*candidate, "--version"], timeout=PROBE_TIMEOUT)
            # Python 2 prints its version on stderr
            version = result.output.strip()
            if result.success and "Python 3" in version:
                return candidate, version
        return None, ""

    def probe_pip(self, python: Optional[tuple[str, ...]]) -> Optional[tuple[str, ...]]:
        for candidate in self.adapter.pip_candidates(python):
            if self._responds([*candidate, "--version"]):
                return candidate
        return None

    def probe_archive_tool(self) -> Optional[str]:
        for tool in self.adapter.archive_tool_candidates():
            if self._responds(self.adapter.archive_probe(tool)):
                return tool
        return None

    def probe_adb(self) -> Optional[str]:
        bundled = self.adapter.platform_tools_dir / self.adapter.adb_name
        if bundled.is_file():
            return str(bundled)
        on_path = self.runner.which("adb")
        if on_path and self._responds([on_path, "version"]):
            return on_path
        return None
