"""
Device Module

adb access, architecture detection and frida-server deployment.
"""

from fridasetup.device.architecture import ArchitectureResolver, classify_abi
from fridasetup.device.bridge import DeviceBridge, PlatformTools
from fridasetup.device.deployer import DEFAULT_REMOTE_PATH, DeviceDeployer

__all__ = [
    "ArchitectureResolver",
    "classify_abi",
    "DeviceBridge",
    "PlatformTools",
    "DeviceDeployer",
    "DEFAULT_REMOTE_PATH",
]
