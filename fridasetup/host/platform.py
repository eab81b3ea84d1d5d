"""
Platform Adapters

Everything that differs between a POSIX host and a Windows host lives
here: package-manager commands, path conventions, the archive tool and
the syntax of shell-profile lines. The workflow itself is shared.
"""

from __future__ import annotations

import logging
import os
import shutil
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Mapping, Optional

from fridasetup.exceptions import DownloadError
from fridasetup.models import HostCapabilities, PackageManager

logger = logging.getLogger(__name__)

PLATFORM_TOOLS_URL = "https://dl.google.com/android/repository/platform-tools-latest-{os}.zip"

SEVEN_ZIP_URL = "https://www.7-zip.org/a/7zr.exe"
SEVEN_ZIP_FALLBACK_URL = "https://github.com/ip7z/7zip/releases/download/24.08/7zr.exe"


class PlatformAdapter(ABC):
    """Host-specific capability set consumed by the setup workflow."""

    name: str = ""
    executable_suffix: str = ""
    venv_bin_dirname: str = "bin"

    def __init__(
        self,
        home: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
    ):
        self.home = Path(home) if home else Path.home()
        self.environ = os.environ if environ is None else environ

    # =========================================================================
    # Paths
    # =========================================================================

    @property
    def local_bin_dir(self) -> Path:
        return self.home / ".local" / "bin"

    @property
    def platform_tools_dir(self) -> Path:
        return self.home / "platform-tools"

    @property
    def tools_dir(self) -> Path:
        """Where portable helper binaries are kept."""
        return self.home / ".frida-setup" / "tools"

    @property
    def adb_name(self) -> str:
        return f"adb{self.executable_suffix}"

    @property
    @abstractmethod
    def platform_tools_url(self) -> str:
        """Download URL of the Android platform-tools zip."""

    def venv_bin(self, venv_dir: Path) -> Path:
        return venv_dir / self.venv_bin_dirname

    def venv_executable(self, venv_dir: Path, name: str) -> Path:
        return self.venv_bin(venv_dir) / f"{name}{self.executable_suffix}"

    # =========================================================================
    # Probing
    # =========================================================================

    @abstractmethod
    def package_manager_probes(self) -> list[tuple[PackageManager, list[str]]]:
        """Package managers in priority order with the command that proves each."""

    @abstractmethod
    def python_candidates(self) -> list[tuple[str, ...]]:
        """Python 3 invocations in priority order."""

    def pip_candidates(self, python: Optional[tuple[str, ...]]) -> list[tuple[str, ...]]:
        candidates: list[tuple[str, ...]] = [("pip3",), ("pip",)]
        if python:
            candidates.append((*python, "-m", "pip"))
        return candidates

    @abstractmethod
    def archive_tool_candidates(self) -> list[str]:
        """Decompression tools able to unpack ``.xz`` in priority order."""

    def archive_probe(self, tool: str) -> list[str]:
        return [tool, "--version"]

    # =========================================================================
    # Package management
    # =========================================================================

    @abstractmethod
    def install_commands(self, manager: PackageManager, packages: list[str]) -> list[list[str]]:
        """
        Commands that install ``packages`` with ``manager``.

        An empty list means the manager cannot install anything unattended.
        """

    @abstractmethod
    def python_packages(self, manager: PackageManager) -> list[str]:
        """Packages providing Python 3 and pip."""

    @abstractmethod
    def pip_packages(self, manager: PackageManager) -> list[str]:
        """Packages providing pip alone."""

    @abstractmethod
    def build_dependencies(self, manager: PackageManager) -> list[str]:
        """Headers and compilers needed to build wheels from source."""

    @abstractmethod
    def acquire_archive_tool(self, runner, capabilities: HostCapabilities, downloader) -> bool:
        """Try to make an archive tool available. Returns True on success."""

    def decompress_command(self, tool: str, archive: Path, dest_dir: Path) -> list[str]:
        """Command that unpacks ``archive`` into ``dest_dir``, keeping the archive."""
        name = Path(tool).name.lower()
        if name.startswith("7z"):
            return [tool, "e", str(archive), f"-o{dest_dir}", "-y"]
        if name.startswith("unxz"):
            return [tool, "-k", str(archive)]
        return [tool, "-d", "-k", str(archive)]

    # =========================================================================
    # Python environment
    # =========================================================================

    @abstractmethod
    def user_scripts_query(self, python: tuple[str, ...]) -> list[str]:
        """Command printing the location pip --user installs scripts relative to."""

    @abstractmethod
    def user_scripts_dir(self, query_output: str) -> Path:
        """Turn the output of ``user_scripts_query`` into the scripts directory."""

    @abstractmethod
    def expose_entry_point(self, source: Path, target: Path) -> None:
        """Make ``source`` reachable as ``target``, replacing any previous one."""

    # =========================================================================
    # Shell profile
    # =========================================================================

    @abstractmethod
    def find_profile(self) -> Optional[Path]:
        """The persistent shell startup file, or None if there is none."""

    @abstractmethod
    def environment_block(self, python: tuple[str, ...], extra_dirs: list[Path]) -> list[str]:
        """Profile lines putting the local bin, platform-tools and user scripts on PATH."""

    @abstractmethod
    def path_line(self, directory: Path) -> str:
        """A single profile line appending ``directory`` to PATH."""

    @abstractmethod
    def venv_activation_lines(self, venv_dir: Path) -> list[str]:
        """Profile lines auto-activating the virtual environment."""


class LinuxAdapter(PlatformAdapter):
    """POSIX hosts: sudo + distribution package managers, xz, rc files."""

    name = "linux"

    _PROBES = [
        (PackageManager.APT, ["apt-get", "--version"]),
        (PackageManager.DNF, ["dnf", "--version"]),
        (PackageManager.YUM, ["yum", "--version"]),
        (PackageManager.PACMAN, ["pacman", "--version"]),
        (PackageManager.ZYPPER, ["zypper", "--version"]),
        (PackageManager.APK, ["apk", "--version"]),
    ]

    _PYTHON_PACKAGES = {
        PackageManager.APT: ["python3", "python3-pip"],
        PackageManager.DNF: ["python3", "python3-pip"],
        PackageManager.YUM: ["python3", "python3-pip"],
        PackageManager.PACMAN: ["python", "python-pip"],
        PackageManager.ZYPPER: ["python3", "python3-pip"],
        PackageManager.APK: ["python3", "py3-pip"],
    }

    _BUILD_DEPENDENCIES = {
        PackageManager.APT: [
            "python3-pip", "python3-venv", "python3-dev",
            "build-essential", "libffi-dev", "libssl-dev",
        ],
        PackageManager.DNF: ["python3-pip", "python3-devel", "gcc", "libffi-devel", "openssl-devel"],
        PackageManager.YUM: ["python3-pip", "python3-devel", "gcc", "libffi-devel", "openssl-devel"],
        PackageManager.PACMAN: ["python-pip", "python-virtualenv", "base-devel", "libffi", "openssl"],
        PackageManager.ZYPPER: ["python3-pip", "python3-devel", "gcc", "libffi-devel", "libopenssl-devel"],
        PackageManager.APK: ["py3-pip", "python3-dev", "build-base", "libffi-dev", "openssl-dev"],
    }

    def __init__(
        self,
        home: Optional[Path] = None,
        environ: Optional[Mapping[str, str]] = None,
        use_sudo: Optional[bool] = None,
    ):
        super().__init__(home, environ)
        if use_sudo is None:
            is_root = hasattr(os, "geteuid") and os.geteuid() == 0
            use_sudo = not is_root and shutil.which("sudo") is not None
        self.use_sudo = use_sudo

    @property
    def platform_tools_url(self) -> str:
        return PLATFORM_TOOLS_URL.format(os="darwin" if sys.platform == "darwin" else "linux")

    def _elevate(self, command: list[str]) -> list[str]:
        return ["sudo", *command] if self.use_sudo else command

    def package_manager_probes(self) -> list[tuple[PackageManager, list[str]]]:
        return list(self._PROBES)

    def python_candidates(self) -> list[tuple[str, ...]]:
        return [("python3",), ("python",)]

    def archive_tool_candidates(self) -> list[str]:
        return ["xz", "unxz"]

    def install_commands(self, manager: PackageManager, packages: list[str]) -> list[list[str]]:
        if not packages:
            return []
        if manager == PackageManager.APT:
            return [
                self._elevate(["apt-get", "update"]),
                self._elevate(["apt-get", "install", "-y", *packages]),
            ]
        if manager in (PackageManager.DNF, PackageManager.YUM, PackageManager.ZYPPER):
            return [self._elevate([manager.value, "install", "-y", *packages])]
        if manager == PackageManager.PACMAN:
            return [self._elevate(["pacman", "-Sy", "--noconfirm", *packages])]
        if manager == PackageManager.APK:
            return [self._elevate(["apk", "add", *packages])]
        return []

    def python_packages(self, manager: PackageManager) -> list[str]:
        return list(self._PYTHON_PACKAGES.get(manager, []))

    def pip_packages(self, manager: PackageManager) -> list[str]:
        return self.python_packages(manager)[1:]

    def build_dependencies(self, manager: PackageManager) -> list[str]:
        return list(self._BUILD_DEPENDENCIES.get(manager, []))

    def acquire_archive_tool(self, runner, capabilities: HostCapabilities, downloader) -> bool:
        manager = capabilities.package_manager
        package = "xz-utils" if manager == PackageManager.APT else "xz"
        commands = self.install_commands(manager, [package])
        if not commands:
            logger.warning("Please install xz-utils manually")
            return False

        logger.info("Installing %s using %s...", package, manager.value)
        for command in commands:
            result = runner.run(command)
            if not result.success:
                logger.warning("%s failed: %s", " ".join(command), result.stderr.strip())
                return False
        return True

    def user_scripts_query(self, python: tuple[str, ...]) -> list[str]:
        return [*python, "-m", "site", "--user-base"]

    def user_scripts_dir(self, query_output: str) -> Path:
        return Path(query_output.strip()) / "bin"

    def expose_entry_point(self, source: Path, target: Path) -> None:
        if target.is_symlink() or target.exists():
            target.unlink()
        os.symlink(source, target)

    def find_profile(self) -> Optional[Path]:
        zshrc = self.home / ".zshrc"
        if self.environ.get("ZSH_VERSION") or "zsh" in self.environ.get("SHELL", "") or zshrc.exists():
            return zshrc
        for name in (".bashrc", ".bash_profile", ".profile"):
            candidate = self.home / name
            if candidate.exists():
                return candidate
        return None

    def environment_block(self, python: tuple[str, ...], extra_dirs: list[Path]) -> list[str]:
        py = " ".join(python) if python else "python3"
        lines = [
            "# Add local bin to PATH (for pip --user installs)",
            *self._path_guard('$HOME/.local/bin'),
            "",
            "# Add platform-tools to PATH",
            *self._path_guard('$HOME/platform-tools'),
            "",
            "# Ensure pip user base is in PATH",
            f'_PIP_USER_BASE="$({py} -m site --user-base 2>/dev/null)/bin"',
            *self._path_guard("$_PIP_USER_BASE"),
            "unset _PIP_USER_BASE",
        ]
        for directory in extra_dirs:
            lines.extend(["", *self._path_guard(str(directory))])
        return lines

    @staticmethod
    def _path_guard(directory: str) -> list[str]:
        return [
            f'if [ -d "{directory}" ]; then',
            '    case ":$PATH:" in',
            f'        *":{directory}:"*) ;;',
            f'        *) export PATH="{directory}:$PATH" ;;',
            "    esac",
            "fi",
        ]

    def path_line(self, directory: Path) -> str:
        return f'export PATH="$PATH:{directory}"'

    def venv_activation_lines(self, venv_dir: Path) -> list[str]:
        activate = self.venv_bin(venv_dir) / "activate"
        return [
            f'if [ -f "{activate}" ]; then',
            f'    source "{activate}"',
            "fi",
        ]


class WindowsAdapter(PlatformAdapter):
    """Windows hosts: winget/choco, portable 7-Zip, PowerShell profile."""

    name = "windows"
    executable_suffix = ".exe"
    venv_bin_dirname = "Scripts"

    _PYTHON_PACKAGES = {
        PackageManager.WINGET: ["Python.Python.3.12"],
        PackageManager.CHOCO: ["python"],
    }

    @property
    def platform_tools_url(self) -> str:
        return PLATFORM_TOOLS_URL.format(os="windows")

    @property
    def portable_archive_tool(self) -> Path:
        return self.tools_dir / "7zr.exe"

    def package_manager_probes(self) -> list[tuple[PackageManager, list[str]]]:
        return [
            (PackageManager.WINGET, ["winget", "--version"]),
            (PackageManager.CHOCO, ["choco", "--version"]),
            (
                PackageManager.STORE,
                [
                    "powershell", "-NoProfile", "-Command",
                    "if (Get-AppxPackage -Name Microsoft.WindowsStore) { exit 0 } else { exit 1 }",
                ],
            ),
        ]

    def python_candidates(self) -> list[tuple[str, ...]]:
        return [("py", "-3"), ("python",), ("python3",)]

    def archive_tool_candidates(self) -> list[str]:
        return ["7z", "7za", str(self.portable_archive_tool)]

    def archive_probe(self, tool: str) -> list[str]:
        # 7-Zip prints usage and exits 0 when run without a command
        return [tool]

    def install_commands(self, manager: PackageManager, packages: list[str]) -> list[list[str]]:
        if not packages:
            return []
        if manager == PackageManager.WINGET:
            return [
                [
                    "winget", "install", "-e", "--id", package, "--silent",
                    "--accept-package-agreements", "--accept-source-agreements",
                ]
                for package in packages
            ]
        if manager == PackageManager.CHOCO:
            return [["choco", "install", "-y", *packages]]
        return []

    def python_packages(self, manager: PackageManager) -> list[str]:
        return list(self._PYTHON_PACKAGES.get(manager, []))

    def pip_packages(self, manager: PackageManager) -> list[str]:
        # pip ships with the python.org installers
        return []

    def build_dependencies(self, manager: PackageManager) -> list[str]:
        return []

    def acquire_archive_tool(self, runner, capabilities: HostCapabilities, downloader) -> bool:
        for url in (SEVEN_ZIP_URL, SEVEN_ZIP_FALLBACK_URL):
            try:
                downloader.fetch(url, self.portable_archive_tool)
                return True
            except DownloadError as e:
                logger.warning("7-Zip download failed: %s", e.message)
        return False

    def user_scripts_query(self, python: tuple[str, ...]) -> list[str]:
        return [*python, "-m", "site", "--user-site"]

    def user_scripts_dir(self, query_output: str) -> Path:
        return Path(query_output.strip()).parent / "Scripts"

    def expose_entry_point(self, source: Path, target: Path) -> None:
        target = target.with_suffix(source.suffix)
        if target.exists():
            target.unlink()
        shutil.copy2(source, target)

    def find_profile(self) -> Optional[Path]:
        documents = self.home / "Documents"
        pwsh = documents / "PowerShell"
        folder = pwsh if pwsh.is_dir() else documents / "WindowsPowerShell"
        return folder / "Microsoft.PowerShell_profile.ps1"

    def environment_block(self, python: tuple[str, ...], extra_dirs: list[Path]) -> list[str]:
        dirs = [self.local_bin_dir, self.platform_tools_dir, *extra_dirs]
        quoted = ", ".join(f'"{d}"' for d in dirs)
        return [
            f"foreach ($p in @({quoted})) {{",
            "    if ((Test-Path $p) -and -not (($env:Path -split ';') -contains $p)) {",
            '        $env:Path = "$p;$env:Path"',
            "    }",
            "}",
        ]

    def path_line(self, directory: Path) -> str:
        return f'$env:Path = "$env:Path;{directory}"'

    def venv_activation_lines(self, venv_dir: Path) -> list[str]:
        activate = self.venv_bin(venv_dir) / "Activate.ps1"
        return [f'if (Test-Path "{activate}") {{ . "{activate}" }}']


def detect_platform(
    home: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> PlatformAdapter:
    """Pick the adapter for the running host."""
    if sys.platform.startswith("win"):
        return WindowsAdapter(home, environ)
    return LinuxAdapter(home, environ)
