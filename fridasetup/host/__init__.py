"""
Host Module

Process execution, platform conventions, capability probing and shell
profile edits.
"""

from fridasetup.host.platform import LinuxAdapter, PlatformAdapter, WindowsAdapter, detect_platform
from fridasetup.host.prober import CapabilityProber
from fridasetup.host.runner import CommandResult, CommandRunner, LocalRunner
from fridasetup.host.shell_profile import ShellProfile

__all__ = [
    "CommandResult",
    "CommandRunner",
    "LocalRunner",
    "PlatformAdapter",
    "LinuxAdapter",
    "WindowsAdapter",
    "detect_platform",
    "CapabilityProber",
    "ShellProfile",
]
