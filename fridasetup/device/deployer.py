"""
Device Deployer

Pushes the artifact to the device, makes it executable and optionally
starts it in the background.
"""

from __future__ import annotations

import logging
import time
from pathlib import PurePosixPath
from typing import Callable, Optional

from fridasetup.device.bridge import DeviceBridge
from fridasetup.exceptions import DeploymentError
from fridasetup.models import ArtifactLocation, DeploymentResult
from fridasetup.prompts import Prompter

logger = logging.getLogger(__name__)

DEFAULT_REMOTE_PATH = "/data/local/tmp/frida-server"
DEFAULT_GRACE_PERIOD = 2.0


def manual_instructions(remote_path: str, local_name: str = "frida-server") -> list[str]:
    """Commands a user can run to deploy by hand."""
    remote_dir = str(PurePosixPath(remote_path).parent)
    return [
        f"adb push {local_name} {remote_dir}/",
        f'adb shell "chmod 755 {remote_path}"',
        f'adb shell "{remote_path} &"',
    ]


class DeviceDeployer:
    """Deploys a local artifact through the device bridge."""

    def __init__(
        self,
        bridge: DeviceBridge,
        prompter: Optional[Prompter] = None,
        grace_period: float = DEFAULT_GRACE_PERIOD,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.bridge = bridge
        self.prompter = prompter or Prompter(interactive=False)
        self.grace_period = grace_period
        self.sleep = sleep

    def deploy(
        self,
        artifact: ArtifactLocation,
        remote_path: str = DEFAULT_REMOTE_PATH,
        start: Optional[bool] = None,
    ) -> DeploymentResult:
        """
        Push ``artifact`` to ``remote_path``.

        Args:
            artifact: The local artifact.
            remote_path: Target path on the device.
            start: Start the server afterwards. None asks the user.

        Returns:
            DeploymentResult. No connected device is not an error: the
            result is marked skipped and carries manual instructions.

        Raises:
            DeploymentError: If the push or chmod fails.
        """
        logger.info("Checking for connected Android device...")
        device_id = self.bridge.select_device()

        if device_id is None:
            instructions = manual_instructions(remote_path, artifact.path.name)
            logger.warning("No Android device connected!")
            logger.warning("Please connect your device with USB debugging enabled and run:")
            for line in instructions:
                logger.warning("  %s", line)
            return DeploymentResult(
                success=True,
                remote_path=remote_path,
                skipped=True,
                message="No Android device connected",
                instructions=instructions,
            )

        if not artifact.exists or not artifact.path.is_file():
            raise DeploymentError(
                f"Frida Server file not found: {artifact.path}",
                device_id=device_id,
                hint="Please run the setup again.",
            )

        logger.info("Pushing Frida Server to %s...", device_id)
        result = self.bridge.push(artifact.path, remote_path)
        if not result.success:
            raise DeploymentError(
                f"adb push failed: {result.stderr.strip()}",
                device_id=device_id,
                hint=f"adb -s {device_id} push {artifact.path} {remote_path}",
            )

        logger.info("Setting permissions...")
        result = self.bridge.shell(f"chmod 755 {remote_path}")
        if not result.success:
            raise DeploymentError(
                f"chmod failed on device: {result.stderr.strip()}",
                device_id=device_id,
                hint=f'adb -s {device_id} shell "chmod 755 {remote_path}"',
            )

        logger.info("Frida Server pushed to %s", remote_path)
        deployment = DeploymentResult(
            success=True,
            remote_path=remote_path,
            device_id=device_id,
            message=f"Pushed to {remote_path}",
        )

        if start is None:
            start = self.prompter.confirm("Do you want to start Frida Server now? (y/n): ", default=False)
        if start:
            self.start(remote_path)
            deployment.started = True
            deployment.message = f"Started {remote_path}"
        return deployment

    def start(self, remote_path: str) -> None:
        """
        Restart the server in the background.

        adb gives no signal once the process is up, so this only waits a
        fixed grace period.
        """
        logger.info("Starting Frida Server...")
        process_name = PurePosixPath(remote_path).name
        stopped = self.bridge.shell(f"pkill -f {process_name}")
        if not stopped.success:
            logger.debug("No running %s to stop", process_name)

        self.bridge.shell_background(f"{remote_path} &")
        self.sleep(self.grace_period)
        logger.info("Frida Server started!")
