"""
Installer Strategy Chain

Tries an ordered list of install strategies until one succeeds. Earlier
failures are expected and only logged; running out of strategies is fatal.

The canonical order for Python packages goes from least to most invasive:

1. ``pip install --user``
2. ``pip install`` (system scope)
3. ``pip install --user --break-system-packages``
4. a fresh virtual environment whose entry points are exposed in the
   local bin directory and which is auto-activated from the shell profile
"""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Sequence

from fridasetup.exceptions import AllStrategiesFailed
from fridasetup.host.platform import PlatformAdapter
from fridasetup.host.runner import CommandResult, CommandRunner
from fridasetup.host.shell_profile import VENV_MARKER, ShellProfile
from fridasetup.models import PACKAGES_PLACEHOLDER, InstallStrategy, StrategyScope

logger = logging.getLogger(__name__)

DEFAULT_ENTRY_POINTS = (
    "frida",
    "frida-ps",
    "frida-trace",
    "frida-ls-devices",
    "frida-kill",
    "frida-discover",
    "objection",
)


@dataclass
class StrategyAttempt:
    """One strategy run by the chain."""

    strategy: InstallStrategy
    result: CommandResult

    @property
    def success(self) -> bool:
        return self.result.success

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.name,
            "scope": self.strategy.scope.value,
            "success": self.success,
            "return_code": self.result.return_code,
        }


@dataclass
class InstallOutcome:
    """The strategy that succeeded and everything tried before it."""

    strategy: InstallStrategy
    attempts: list[StrategyAttempt] = field(default_factory=list)


class IsolatedEnvironmentStrategy(InstallStrategy):
    """
    Install into a dedicated virtual environment.

    The environment directory is always recreated from scratch, and is
    removed again if anything fails, so it either exists fully usable or
    not at all.
    """

    def __init__(
        self,
        python: tuple[str, ...],
        venv_dir: Path,
        adapter: PlatformAdapter,
        bin_dir: Path,
        profile: Optional[ShellProfile] = None,
        entry_points: Sequence[str] = DEFAULT_ENTRY_POINTS,
    ):
        super().__init__(name="isolated-environment", scope=StrategyScope.ISOLATED)
        self.python = python
        self.venv_dir = venv_dir
        self.adapter = adapter
        self.bin_dir = bin_dir
        self.profile = profile
        self.entry_points = tuple(entry_points)

    def render(self, packages: list[str]) -> list[str]:
        venv_python = self.adapter.venv_executable(self.venv_dir, "python")
        return [str(venv_python), "-m", "pip", "install", *packages]

    def _remove(self) -> None:
        if self.venv_dir.exists():
            shutil.rmtree(self.venv_dir, ignore_errors=True)

    def attempt(self, runner: CommandRunner, packages: list[str]) -> CommandResult:
        logger.warning("Standard installation failed. Creating virtual environment...")
        self._remove()

        result = runner.run([*self.python, "-m", "venv", str(self.venv_dir)])
        if not result.success:
            self._remove()
            return result

        venv_python = str(self.adapter.venv_executable(self.venv_dir, "python"))
        upgrade = runner.run([venv_python, "-m", "pip", "install", "--upgrade", "pip"])
        if not upgrade.success:
            logger.warning("Could not upgrade pip inside %s", self.venv_dir)

        result = runner.run(self.render(packages))
        if not result.success:
            self._remove()
            return result

        logger.info("Installed in virtual environment: %s", self.venv_dir)
        self._expose_entry_points()
        if self.profile is not None:
            self.profile.ensure_block(VENV_MARKER, self.adapter.venv_activation_lines(self.venv_dir))
        return result

    def _expose_entry_points(self) -> None:
        self.bin_dir.mkdir(parents=True, exist_ok=True)
        exposed = 0
        for tool in self.entry_points:
            source = self.adapter.venv_executable(self.venv_dir, tool)
            if not source.exists():
                continue
            try:
                self.adapter.expose_entry_point(source, self.bin_dir / tool)
                exposed += 1
            except OSError as e:
                logger.warning("Could not expose %s: %s", tool, e)
        logger.info("Exposed %d entry points in %s", exposed, self.bin_dir)


def canonical_strategies(
    pip: tuple[str, ...],
    python: tuple[str, ...],
    adapter: PlatformAdapter,
    venv_dir: Path,
    profile: Optional[ShellProfile] = None,
    entry_points: Sequence[str] = DEFAULT_ENTRY_POINTS,
) -> list[InstallStrategy]:
    """The fixed strategy order for installing the instrumentation packages."""
    return [
        InstallStrategy(
            name="user",
            scope=StrategyScope.USER,
            command=(*pip, "install", "--user", PACKAGES_PLACEHOLDER),
        ),
        InstallStrategy(
            name="system",
            scope=StrategyScope.SYSTEM,
            command=(*pip, "install", PACKAGES_PLACEHOLDER),
        ),
        InstallStrategy(
            name="break-system-packages",
            scope=StrategyScope.USER,
            command=(*pip, "install", "--user", "--break-system-packages", PACKAGES_PLACEHOLDER),
        ),
        IsolatedEnvironmentStrategy(
            python=python,
            venv_dir=venv_dir,
            adapter=adapter,
            bin_dir=adapter.local_bin_dir,
            profile=profile,
            entry_points=entry_points,
        ),
    ]


class InstallerChain:
    """Runs install strategies strictly in order until one succeeds."""

    def __init__(self, runner: CommandRunner, hint: Optional[str] = None):
        self.runner = runner
        self.hint = hint

    def install_packages(
        self,
        names: Sequence[str],
        strategies: Sequence[InstallStrategy],
    ) -> InstallOutcome:
        """
        Install ``names`` with the first strategy that succeeds.

        Raises:
            AllStrategiesFailed: If every strategy failed.
        """
        packages = list(names)
        attempts: list[StrategyAttempt] = []

        for index, strategy in enumerate(strategies, start=1):
            logger.info(
                "Attempting %s installation (%d/%d)...",
                strategy.name, index, len(strategies),
            )
            try:
                result = strategy.attempt(self.runner, packages)
            except OSError as e:
                result = CommandResult(command=strategy.render(packages), stderr=str(e), return_code=-1)

            attempts.append(StrategyAttempt(strategy=strategy, result=result))
            if result.success:
                logger.info("Installed %s (%s)", " ".join(packages), strategy.scope.value)
                return InstallOutcome(strategy=strategy, attempts=attempts)

            reason = result.stderr.strip().splitlines()[-1:] or [f"exit {result.return_code}"]
            logger.warning("%s installation failed: %s", strategy.name, reason[0])

        raise AllStrategiesFailed(packages, attempts, hint=self.hint)
