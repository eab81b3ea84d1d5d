"""
Frida Setup

Provisions a host for Frida-based Android instrumentation: installs the
Python tooling, fetches the Android platform-tools and deploys the
architecture-matched frida-server to a connected device.
"""

from fridasetup.artifacts import ArtifactFetcher
from fridasetup.config import SetupConfig, get_config, set_config
from fridasetup.device import ArchitectureResolver, DeviceBridge, DeviceDeployer, classify_abi
from fridasetup.exceptions import (
    AllStrategiesFailed,
    ArchiveToolUnavailable,
    ConfigurationError,
    DeploymentError,
    DownloadError,
    ExtractionError,
    InstallError,
    SetupError,
    ToolchainError,
)
from fridasetup.host import CapabilityProber, CommandResult, LocalRunner, detect_platform
from fridasetup.install import InstallerChain, canonical_strategies
from fridasetup.models import (
    ArtifactLocation,
    DeploymentResult,
    DeviceArchitecture,
    HostCapabilities,
    InstallStrategy,
    PackageManager,
    StrategyScope,
    TargetSpec,
)
from fridasetup.orchestrator import SetupOrchestrator, SetupReport

__version__ = "0.1.0"
__all__ = [
    # Models
    "ArtifactLocation",
    "DeploymentResult",
    "DeviceArchitecture",
    "HostCapabilities",
    "InstallStrategy",
    "PackageManager",
    "StrategyScope",
    "TargetSpec",
    # Config
    "SetupConfig",
    "get_config",
    "set_config",
    # Exceptions
    "SetupError",
    "ConfigurationError",
    "ToolchainError",
    "InstallError",
    "AllStrategiesFailed",
    "DownloadError",
    "ExtractionError",
    "ArchiveToolUnavailable",
    "DeploymentError",
    # Components
    "LocalRunner",
    "CommandResult",
    "CapabilityProber",
    "detect_platform",
    "InstallerChain",
    "canonical_strategies",
    "ArchitectureResolver",
    "classify_abi",
    "ArtifactFetcher",
    "DeviceBridge",
    "DeviceDeployer",
    "SetupOrchestrator",
    "SetupReport",
]
