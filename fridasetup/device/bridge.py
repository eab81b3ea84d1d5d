"""
Device bridge (adb) access and Android platform-tools provisioning.
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
import tempfile
import zipfile
from pathlib import Path
from typing import Optional

from fridasetup.exceptions import DownloadError, ExtractionError
from fridasetup.host.platform import PlatformAdapter
from fridasetup.host.runner import CommandResult, CommandRunner
from fridasetup.host.shell_profile import ShellProfile
from fridasetup.install.toolchain import prepend_path
from fridasetup.net import Downloader

logger = logging.getLogger(__name__)

ABI_PROPERTY = "ro.product.cpu.abi"
ZIP_FOLDER = "platform-tools"


class DeviceBridge:
    """Runs adb commands against one connected device."""

    def __init__(
        self,
        adb_path: str,
        runner: CommandRunner,
        device_id: Optional[str] = None,
        timeout: int = 30,
    ):
        self.adb_path = adb_path
        self.runner = runner
        self.device_id = device_id
        self.timeout = timeout

    def _adb(self, *args: str, timeout: Optional[int] = None) -> CommandResult:
        cmd = [self.adb_path]
        if self.device_id:
            cmd.extend(["-s", self.device_id])
        cmd.extend(args)
        return self.runner.run(cmd, timeout=timeout or self.timeout)

    def start_server(self) -> bool:
        return self.runner.run([self.adb_path, "start-server"], timeout=self.timeout).success

    def list_devices(self) -> list[str]:
        """Serials of devices in the ``device`` state (authorized and online)."""
        result = self.runner.run([self.adb_path, "devices"], timeout=10)
        if not result.success:
            return []

        serials = []
        for line in result.stdout.strip().splitlines()[1:]:
            parts = line.split()
            if len(parts) >= 2 and parts[1] == "device":
                serials.append(parts[0])

        if self.device_id:
            return [s for s in serials if s == self.device_id]
        return serials

    def select_device(self) -> Optional[str]:
        """Pin the bridge to the configured device, or the first one listed."""
        devices = self.list_devices()
        if not devices:
            return None
        if self.device_id is None:
            self.device_id = devices[0]
            if len(devices) > 1:
                logger.warning("Multiple devices connected, using %s", self.device_id)
        return self.device_id

    def get_property(self, key: str) -> str:
        result = self._adb("shell", "getprop", key)
        return result.stdout.strip() if result.success else ""

    def query_abi(self) -> Optional[str]:
        """
        The device's primary ABI.

        Returns:
            None when no device is connected, otherwise the ABI string with
            whitespace stripped (possibly empty if unreadable).
        """
        if self.select_device() is None:
            return None
        return self.get_property(ABI_PROPERTY).strip()

    def push(self, local_path: Path, remote_path: str) -> CommandResult:
        return self._adb("push", str(local_path), remote_path, timeout=120)

    def shell(self, command: str) -> CommandResult:
        return self._adb("shell", command)

    def shell_background(self, command: str) -> None:
        """Launch a shell command on the device without waiting for it."""
        cmd = [self.adb_path]
        if self.device_id:
            cmd.extend(["-s", self.device_id])
        cmd.extend(["shell", command])
        self.runner.spawn(cmd)


class PlatformTools:
    """Locates adb, downloading the Android platform-tools if needed."""

    PROFILE_COMMENT = "# Added by Frida setup script - Android Platform Tools"

    def __init__(
        self,
        adapter: PlatformAdapter,
        runner: CommandRunner,
        downloader: Downloader,
        profile: Optional[ShellProfile] = None,
        install_dir: Optional[Path] = None,
    ):
        self.adapter = adapter
        self.runner = runner
        self.downloader = downloader
        self.profile = profile
        self.install_dir = install_dir or adapter.platform_tools_dir

    @property
    def adb_path(self) -> Path:
        return self.install_dir / self.adapter.adb_name

    def ensure(self, known: Optional[str] = None) -> str:
        """
        Return a usable adb path.

        Args:
            known: adb already found by the capability probe, used when
                ``install_dir`` holds no adb.

        Raises:
            DownloadError: If the platform-tools could not be downloaded.
            ExtractionError: If the downloaded zip is unreadable.
        """
        if self.adb_path.is_file():
            logger.info("Platform Tools already installed at: %s", self.install_dir)
            adb = str(self.adb_path)
        elif known:
            logger.info("Using adb: %s", known)
            return known
        elif self.runner.which("adb"):
            logger.info("Found adb in PATH")
            return self.runner.which("adb")
        else:
            self._download()
            adb = str(self.adb_path)

        self._expose()
        return adb

    def _download(self) -> None:
        logger.info("Downloading Android Platform Tools...")
        url = self.adapter.platform_tools_url
        hint = f"Download {url} manually and extract its {ZIP_FOLDER} folder to {self.install_dir}"

        with tempfile.TemporaryDirectory() as tmp:
            archive = Path(tmp) / "platform-tools.zip"
            try:
                self.downloader.fetch(url, archive)
            except DownloadError as e:
                e.hint = hint
                raise

            logger.info("Extracting Platform Tools...")
            staging = Path(tmp) / "extracted"
            try:
                with zipfile.ZipFile(archive) as zf:
                    zf.extractall(staging)
            except zipfile.BadZipFile as e:
                raise ExtractionError(
                    f"Could not extract platform-tools: {e}",
                    archive=str(archive),
                    hint=hint,
                ) from e

            # The zip holds a single platform-tools/ folder
            extracted = staging / ZIP_FOLDER
            if not (extracted / self.adapter.adb_name).is_file():
                raise ExtractionError(
                    f"adb not found in the downloaded platform-tools from {url}",
                    archive=url,
                    hint=hint,
                )
            shutil.copytree(extracted, self.install_dir, dirs_exist_ok=True)

        mode = self.adb_path.stat().st_mode
        self.adb_path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
        logger.info("Platform Tools extracted to: %s", self.install_dir)

    def _expose(self) -> None:
        entries = os.environ.get("PATH", "").split(os.pathsep)
        if str(self.install_dir) in entries:
            logger.info("Platform Tools already in PATH")
            return
        prepend_path(self.install_dir)
        if self.profile is not None:
            self.profile.ensure_line(self.adapter.path_line(self.install_dir), self.PROFILE_COMMENT)
