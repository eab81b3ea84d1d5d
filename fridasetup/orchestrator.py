"""
Setup Orchestrator

Sequences the whole workflow:

    probe host -> Python/pip -> Python environment -> instrumentation
    packages -> platform-tools -> device architecture -> frida-server
    download -> deployment

Each step either completes, completes with a warning, or raises a
SetupError that ends the run. Completed steps are never rolled back.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from fridasetup.artifacts import ArtifactFetcher
from fridasetup.config import SetupConfig, get_config
from fridasetup.device.architecture import ArchitectureResolver
from fridasetup.device.bridge import DeviceBridge, PlatformTools
from fridasetup.device.deployer import DeviceDeployer
from fridasetup.exceptions import SetupError
from fridasetup.host.platform import PlatformAdapter, detect_platform
from fridasetup.host.prober import CapabilityProber
from fridasetup.host.runner import CommandRunner, LocalRunner
from fridasetup.host.shell_profile import ShellProfile
from fridasetup.install.chain import InstallerChain, canonical_strategies
from fridasetup.install.toolchain import PythonToolchain
from fridasetup.models import (
    ArtifactLocation,
    DeploymentResult,
    DeviceArchitecture,
    HostCapabilities,
    PackageManager,
    SetupResult,
    TargetSpec,
)
from fridasetup.net import Downloader
from fridasetup.prompts import Prompter

logger = logging.getLogger(__name__)

MANUAL_INSTALL_HINT = "Please try manually: pip install --user frida frida-tools objection"


@dataclass
class SetupReport:
    """Everything a run produced."""

    target: TargetSpec
    steps: list[SetupResult] = field(default_factory=list)
    capabilities: Optional[HostCapabilities] = None
    install_strategy: Optional[str] = None
    installed_version: Optional[str] = None
    adb: Optional[str] = None
    arch: Optional[DeviceArchitecture] = None
    artifact: Optional[ArtifactLocation] = None
    deployment: Optional[DeploymentResult] = None
    warnings: list[str] = field(default_factory=list)
    error: Optional[str] = None
    hint: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "frida_version": self.target.frida_version,
            "tools_version": self.target.tools_version,
            "capabilities": self.capabilities.to_dict() if self.capabilities else None,
            "install_strategy": self.install_strategy,
            "installed_version": self.installed_version,
            "adb": self.adb,
            "arch": self.arch.value if self.arch else None,
            "artifact": self.artifact.to_dict() if self.artifact else None,
            "deployment": self.deployment.to_dict() if self.deployment else None,
            "steps": [s.to_dict() for s in self.steps],
            "warnings": self.warnings,
            "error": self.error,
            "hint": self.hint,
        }


class SetupOrchestrator:
    """Runs the provisioning workflow for one host and device."""

    STEPS = [
        ("probe", "Checking host capabilities"),
        ("toolchain", "Checking Python installation"),
        ("python_environment", "Setting up Python environment"),
        ("install_packages", "Installing Frida tools"),
        ("platform_tools", "Checking Android Platform Tools"),
        ("architecture", "Resolving device architecture"),
        ("artifact", "Fetching Frida Server"),
        ("deploy", "Deploying Frida Server"),
    ]

    def __init__(
        self,
        config: Optional[SetupConfig] = None,
        adapter: Optional[PlatformAdapter] = None,
        runner: Optional[CommandRunner] = None,
        downloader: Optional[Downloader] = None,
        prompter: Optional[Prompter] = None,
        bridge_factory: Optional[Callable[[str], DeviceBridge]] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        config = config or get_config()
        self.config = config
        self.adapter = adapter or detect_platform()
        self.runner = runner or LocalRunner()
        self.downloader = downloader or Downloader(timeout=config.http_timeout)
        self.prompter = prompter or Prompter(interactive=config.interactive)
        self.bridge_factory = bridge_factory or (
            lambda adb: DeviceBridge(adb, self.runner, device_id=config.device_id)
        )
        self.sleep = sleep

        self.prober = CapabilityProber(self.runner, self.adapter)
        self.profile = ShellProfile.detect(self.adapter)
        self._current = 0

    def _begin(self, index: int) -> None:
        self._current = index
        _, title = self.STEPS[index]
        print(f"\n[{index + 1}/{len(self.STEPS)}] {title}...")

    def _record(self, report: SetupReport, success: bool, message: str, details=None) -> None:
        step, _ = self.STEPS[self._current]
        report.steps.append(SetupResult(step=step, success=success, message=message, details=details or []))
        marker = "✓" if success else "⚠"
        print(f"   {marker} {message}")

    def _warn(self, report: SetupReport, message: str) -> None:
        report.warnings.append(message)

    def run(self) -> SetupReport:
        """
        Run every step.

        Never raises SetupError or OSError: a fatal step is recorded on
        the report together with its remediation hint.
        """
        report = SetupReport(target=self.config.target_spec())
        try:
            self._run(report)
        except SetupError as e:
            self._fail(report, e.message, e.hint)
        except OSError as e:
            self._fail(
                report,
                f"Filesystem error: {e}",
                "Check permissions on the path above and re-run the setup.",
            )
        return report

    def _fail(self, report: SetupReport, message: str, hint: Optional[str]) -> None:
        step, _ = self.STEPS[self._current]
        report.steps.append(SetupResult(step=step, success=False, message=message))
        report.error = message
        report.hint = hint
        logger.error(message)
        if hint:
            logger.error(hint)

    def _run(self, report: SetupReport) -> None:
        target = report.target

        # Step 1: Probe host
        self._begin(0)
        caps = self.prober.probe()
        report.capabilities = caps
        if caps.package_manager == PackageManager.UNKNOWN:
            self._warn(report, "No package manager detected")
        self._record(report, True, f"Package manager: {caps.package_manager.value}")

        # Step 2: Python + pip
        self._begin(1)
        toolchain = PythonToolchain(self.runner, self.adapter, self.prober, self.profile)
        caps = toolchain.ensure_python(caps)
        caps = toolchain.ensure_pip(caps)
        report.capabilities = caps
        self._record(report, True, f"{caps.python_version} with {' '.join(caps.pip)}")

        # Step 3: Python environment
        self._begin(2)
        if not self.profile.available:
            self._warn(report, "No shell configuration file found")
        details = toolchain.prepare_environment(caps)
        self._record(report, True, "Python environment setup complete", details)

        # Step 4: Instrumentation packages
        self._begin(3)
        logger.info(
            "Installing Frida v%s, frida-tools v%s, and %s...",
            target.frida_version, target.tools_version, ", ".join(target.extra_packages) or "nothing else",
        )
        strategies = canonical_strategies(
            pip=caps.pip,
            python=caps.python,
            adapter=self.adapter,
            venv_dir=self.config.venv_dir,
            profile=self.profile,
            entry_points=self.config.entry_points,
        )
        outcome = InstallerChain(self.runner, hint=MANUAL_INSTALL_HINT).install_packages(
            target.packages, strategies
        )
        report.install_strategy = outcome.strategy.name
        report.installed_version = toolchain.verify_installation(caps)
        if report.installed_version is None:
            self._warn(report, "frida command not found in PATH; restart your terminal")
        self._record(
            report, True,
            f"Frida tools installed ({outcome.strategy.scope.value})",
            [a.strategy.name + (" ok" if a.success else " failed") for a in outcome.attempts],
        )

        # Step 5: Platform tools
        self._begin(4)
        platform_tools = PlatformTools(
            self.adapter,
            self.runner,
            self.downloader,
            profile=self.profile,
            install_dir=self.config.platform_tools_dir,
        )
        report.adb = platform_tools.ensure(known=caps.adb)
        bridge = self.bridge_factory(report.adb)
        self._record(report, True, f"adb: {report.adb}")

        # Step 6: Architecture
        self._begin(5)
        resolver = ArchitectureResolver(self.prompter)
        if not target.arch:
            bridge.start_server()
        report.arch = resolver.resolve(target.arch, bridge.query_abi)
        report.warnings.extend(resolver.warnings)
        self._record(report, True, f"Architecture: {report.arch.value}")

        # Step 7: Artifact
        self._begin(6)
        fetcher = ArtifactFetcher(
            self.adapter,
            self.prober,
            self.runner,
            self.downloader,
            capabilities=caps,
        )
        report.artifact = fetcher.fetch(target.frida_version, report.arch, self.config.artifact_dir)
        verb = "Downloaded" if report.artifact.downloaded else "Reused"
        self._record(report, True, f"{verb} {report.artifact.path}")

        # Step 8: Deploy
        self._begin(7)
        deployer = DeviceDeployer(
            bridge,
            self.prompter,
            grace_period=self.config.grace_period,
            sleep=self.sleep,
        )
        report.deployment = deployer.deploy(
            report.artifact,
            remote_path=self.config.remote_path,
            start=self.config.start_server,
        )
        if report.deployment.skipped:
            self._warn(report, report.deployment.message)
            self._record(report, False, report.deployment.message, report.deployment.instructions)
        else:
            self._record(report, True, report.deployment.message)
