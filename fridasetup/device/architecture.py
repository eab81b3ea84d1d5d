"""
Device Architecture Resolver

Maps a device's ABI string onto the architectures frida-server is built
for. Longer, more specific prefixes are checked first so that ``x86_64``
is never taken for ``x86``.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fridasetup.exceptions import ConfigurationError
from fridasetup.models import DeviceArchitecture
from fridasetup.prompts import Prompter

logger = logging.getLogger(__name__)

DEFAULT_ARCHITECTURE = DeviceArchitecture.ARM64

# Checked in order; the first matching prefix wins.
ABI_PREFIXES: list[tuple[str, DeviceArchitecture]] = [
    ("arm64-v8a", DeviceArchitecture.ARM64),
    ("armeabi-v7a", DeviceArchitecture.ARM),
    ("armeabi", DeviceArchitecture.ARM),
    ("x86_64", DeviceArchitecture.X86_64),
    ("x86", DeviceArchitecture.X86),
]

MENU_CHOICES: list[tuple[DeviceArchitecture, str]] = [
    (DeviceArchitecture.ARM64, "most modern phones"),
    (DeviceArchitecture.ARM, "older 32-bit phones"),
    (DeviceArchitecture.X86_64, "emulators, some tablets"),
    (DeviceArchitecture.X86, "older emulators"),
]


def classify_abi(abi: str) -> Optional[DeviceArchitecture]:
    """Classify a raw ABI string, or None if no known prefix matches."""
    abi = abi.strip()
    for prefix, arch in ABI_PREFIXES:
        if abi.startswith(prefix):
            return arch
    return None


class ArchitectureResolver:
    """Decides which frida-server build to fetch."""

    def __init__(self, prompter: Optional[Prompter] = None):
        self.prompter = prompter or Prompter(interactive=False)
        self.warnings: list[str] = []

    def _warn(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning(message)

    def resolve(
        self,
        override: Optional[str] = None,
        query_device: Optional[Callable[[], Optional[str]]] = None,
    ) -> DeviceArchitecture:
        """
        Resolve the target architecture.

        Args:
            override: Explicit architecture; trusted without asking the device.
            query_device: Returns the device ABI, or None if no device is
                connected.

        Returns:
            The architecture to download.
        """
        if override:
            try:
                return DeviceArchitecture(override.strip())
            except ValueError:
                raise ConfigurationError(
                    f"Invalid architecture: {override}. "
                    f"Valid architectures: {', '.join(DeviceArchitecture.choices())}",
                    config_key="arch",
                ) from None

        logger.info("Detecting Android device architecture...")
        abi = query_device() if query_device else None

        if abi is None:
            self._warn("No Android device connected. Please specify architecture manually.")
            return self.choose_interactively()

        if not abi.strip():
            self._warn(f"Could not detect architecture, defaulting to {DEFAULT_ARCHITECTURE.value}")
            return DEFAULT_ARCHITECTURE

        logger.info("Detected device ABI: %s", abi.strip())
        arch = classify_abi(abi)
        if arch is None:
            self._warn(f"Unknown ABI: {abi.strip()}, defaulting to {DEFAULT_ARCHITECTURE.value}")
            return DEFAULT_ARCHITECTURE

        logger.info("Detected architecture: %s", arch.value)
        return arch

    def choose_interactively(self) -> DeviceArchitecture:
        """Numbered menu; empty or invalid input selects arm64."""
        if self.prompter.interactive:
            print("\nAvailable architectures:")
            for number, (arch, description) in enumerate(MENU_CHOICES, start=1):
                print(f"  {number}. {arch.value:7}({description})")
            print()

        answer = self.prompter.ask(
            f"Select architecture (1-{len(MENU_CHOICES)}) or press Enter for "
            f"{DEFAULT_ARCHITECTURE.value}: ",
            default="",
        )
        try:
            index = int(answer) - 1
        except ValueError:
            index = -1

        arch = MENU_CHOICES[index][0] if 0 <= index < len(MENU_CHOICES) else DEFAULT_ARCHITECTURE
        logger.info("Using architecture: %s", arch.value)
        return arch
