"""
Artifact Fetcher

Downloads the architecture-matched frida-server release and unpacks it to
a fixed local path. A file already at that path is taken as valid and
nothing is downloaded; no checksum is verified. Because presence alone
marks the job as done, the destination path only ever receives a fully
extracted file.
"""

from __future__ import annotations

import logging
import os
import stat
from pathlib import Path
from typing import Optional, Union

from fridasetup.exceptions import ArchiveToolUnavailable, DownloadError, ExtractionError
from fridasetup.host.platform import PlatformAdapter
from fridasetup.host.prober import CapabilityProber
from fridasetup.host.runner import CommandRunner
from fridasetup.models import ArtifactLocation, DeviceArchitecture, HostCapabilities
from fridasetup.net import Downloader

logger = logging.getLogger(__name__)

ARTIFACT_NAME = "frida-server"
COMPRESSION_SUFFIX = ".xz"
RELEASE_URL = "https://github.com/frida/frida/releases/download/{version}/{filename}"


def artifact_filename(version: str, arch: Union[DeviceArchitecture, str], name: str = ARTIFACT_NAME) -> str:
    """``frida-server-<version>-android-<arch>``, without compression suffix."""
    arch = DeviceArchitecture(arch).value
    return f"{name}-{version}-android-{arch}"


def artifact_url(
    version: str,
    arch: Union[DeviceArchitecture, str],
    template: str = RELEASE_URL,
    name: str = ARTIFACT_NAME,
) -> str:
    filename = artifact_filename(version, arch, name) + COMPRESSION_SUFFIX
    return template.format(version=version, filename=filename)


class ArtifactFetcher:
    """Fetches and unpacks the device artifact."""

    def __init__(
        self,
        adapter: PlatformAdapter,
        prober: CapabilityProber,
        runner: CommandRunner,
        downloader: Downloader,
        capabilities: Optional[HostCapabilities] = None,
        name: str = ARTIFACT_NAME,
        url_template: str = RELEASE_URL,
    ):
        self.adapter = adapter
        self.prober = prober
        self.runner = runner
        self.downloader = downloader
        self.capabilities = capabilities or HostCapabilities()
        self.name = name
        self.url_template = url_template

    def destination(self, dest_dir: Path) -> Path:
        return dest_dir / self.name

    def fetch(
        self,
        version: str,
        arch: Union[DeviceArchitecture, str],
        dest_dir: Path,
    ) -> ArtifactLocation:
        """
        Make the artifact for ``version``/``arch`` available in ``dest_dir``.

        Raises:
            ArchiveToolUnavailable: If no decompression tool can be found or acquired.
            DownloadError: If the download fails.
            ExtractionError: If decompression fails.
        """
        arch = DeviceArchitecture(arch)
        dest = self.destination(dest_dir)

        if dest.exists():
            logger.info("Frida Server already exists at: %s", dest)
            return ArtifactLocation(path=dest, exists=True, downloaded=False)

        filename = artifact_filename(version, arch, self.name)
        archive = dest_dir / f"{filename}{COMPRESSION_SUFFIX}"
        extracted = dest_dir / filename
        url = artifact_url(version, arch, self.url_template, self.name)

        if extracted.is_file():
            logger.info("Found decompressed %s, moving it into place", extracted.name)
            os.replace(extracted, dest)
            self._make_executable(dest)
            return ArtifactLocation(path=dest, exists=True, downloaded=False)

        logger.info("Downloading Frida Server v%s for Android %s...", version, arch.value)
        tool = self.ensure_archive_tool()

        dest_dir.mkdir(parents=True, exist_ok=True)
        # Files the user already had are never removed
        leftovers = [p for p in (archive, extracted) if not p.exists()]
        try:
            try:
                self.downloader.fetch(url, archive)
            except DownloadError as e:
                e.hint = f"Download {url} manually and extract it to {dest}"
                raise
            logger.info("Downloaded Frida Server")

            self._extract(tool, archive, extracted, dest)
        finally:
            for leftover in leftovers:
                if leftover.exists():
                    leftover.unlink()

        self._make_executable(dest)
        logger.info("Extracted Frida Server successfully")
        return ArtifactLocation(path=dest, exists=True, downloaded=True)

    @staticmethod
    def _make_executable(path: Path) -> None:
        path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

    def _extract(self, tool: str, archive: Path, extracted: Path, dest: Path) -> None:
        logger.info("Extracting Frida Server...")
        command = self.adapter.decompress_command(tool, archive, archive.parent)
        result = self.runner.run(command)

        if not result.success or not extracted.is_file():
            raise ExtractionError(
                f"Could not extract {archive.name}: {result.stderr.strip() or 'no output file'}",
                archive=str(archive),
                hint=f"Extract {archive.name} manually and save it as {dest}",
            )
        os.replace(extracted, dest)

    def ensure_archive_tool(self) -> str:
        """
        Return a decompression tool, acquiring one if none is present.

        Raises:
            ArchiveToolUnavailable: If no tool is available afterwards.
        """
        tool = self.capabilities.archive_tool or self.prober.probe_archive_tool()
        if tool:
            return tool

        logger.info("No decompression tool found, trying to install one...")
        if self.adapter.acquire_archive_tool(self.runner, self.capabilities, self.downloader):
            tool = self.prober.probe_archive_tool()
        if tool:
            return tool

        raise ArchiveToolUnavailable(
            "Could not extract .xz file: no decompression tool available",
            hint="Please install xz-utils (or 7-Zip on Windows) and re-run the setup.",
        )
