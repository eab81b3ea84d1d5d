"""
Data models for the Frida setup workflow.

All entities live for a single run; nothing here is persisted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from fridasetup.host.runner import CommandResult, CommandRunner

PACKAGES_PLACEHOLDER = "{packages}"


class PackageManager(str, Enum):
    """Host package managers, in no particular order."""

    APT = "apt"
    DNF = "dnf"
    YUM = "yum"
    PACMAN = "pacman"
    ZYPPER = "zypper"
    APK = "apk"
    WINGET = "winget"
    CHOCO = "choco"
    STORE = "store"
    UNKNOWN = "unknown"


class StrategyScope(str, Enum):
    """How invasive an install strategy is."""

    USER = "user-scope"
    SYSTEM = "system-scope"
    ISOLATED = "isolated-environment"


class DeviceArchitecture(str, Enum):
    """CPU architectures frida-server is published for."""

    ARM = "arm"
    ARM64 = "arm64"
    X86 = "x86"
    X86_64 = "x86_64"

    @classmethod
    def choices(cls) -> list[str]:
        return [a.value for a in cls]


@dataclass(frozen=True)
class HostCapabilities:
    """What the host offers. Rebuilt only by re-probing."""

    package_manager: PackageManager = PackageManager.UNKNOWN
    python: Optional[tuple[str, ...]] = None
    python_version: str = ""
    pip: Optional[tuple[str, ...]] = None
    archive_tool: Optional[str] = None
    adb: Optional[str] = None

    @property
    def has_python(self) -> bool:
        return self.python is not None

    @property
    def has_pip(self) -> bool:
        return self.pip is not None

    def to_dict(self) -> dict:
        return {
            "package_manager": self.package_manager.value,
            "python": " ".join(self.python) if self.python else None,
            "python_version": self.python_version,
            "pip": " ".join(self.pip) if self.pip else None,
            "archive_tool": self.archive_tool,
            "adb": self.adb,
        }


@dataclass
class InstallStrategy:
    """
    One attempt in the installer chain.

    ``command`` is a template; the ``{packages}`` element expands to the
    requested package specifiers.
    """

    name: str
    scope: StrategyScope
    command: tuple[str, ...] = ()

    def render(self, packages: list[str]) -> list[str]:
        rendered: list[str] = []
        for part in self.command:
            if part == PACKAGES_PLACEHOLDER:
                rendered.extend(packages)
            else:
                rendered.append(part)
        return rendered

    def attempt(self, runner: CommandRunner, packages: list[str]) -> CommandResult:
        """Run the strategy once."""
        return runner.run(self.render(packages))


@dataclass(frozen=True)
class TargetSpec:
    """Requested versions. Never mutated by the workflow."""

    frida_version: str = "15.2.2"
    tools_version: str = "10.4.1"
    arch: Optional[str] = None
    extra_packages: tuple[str, ...] = ("objection",)

    @property
    def packages(self) -> list[str]:
        return [
            f"frida=={self.frida_version}",
            f"frida-tools=={self.tools_version}",
            *self.extra_packages,
        ]


@dataclass
class ArtifactLocation:
    """A local artifact. Presence alone marks it as valid."""

    path: Path
    exists: bool
    downloaded: bool = False

    def to_dict(self) -> dict:
        return {
            "path": str(self.path),
            "exists": self.exists,
            "downloaded": self.downloaded,
        }


@dataclass
class DeploymentResult:
    """Outcome of pushing the artifact to a device."""

    success: bool
    remote_path: str
    device_id: Optional[str] = None
    skipped: bool = False
    started: bool = False
    message: str = ""
    instructions: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "remote_path": self.remote_path,
            "device_id": self.device_id,
            "skipped": self.skipped,
            "started": self.started,
            "message": self.message,
            "instructions": self.instructions,
        }


@dataclass
class SetupResult:
    """Result of a single orchestrated step."""

    step: str
    success: bool
    message: str = ""
    details: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "step": self.step,
            "success": self.success,
            "message": self.message,
            "details": self.details,
        }
