"""
Tests for the frida-server artifact fetcher

Run with: pytest tests/test_artifacts.py -v
"""

import os
import stat
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from conftest import FakeDownloader, FakeRunner, xz_extractor

from fridasetup.artifacts import ArtifactFetcher, artifact_filename, artifact_url
from fridasetup.exceptions import ArchiveToolUnavailable, DownloadError, ExtractionError
from fridasetup.host.platform import SEVEN_ZIP_FALLBACK_URL, SEVEN_ZIP_URL
from fridasetup.host.prober import CapabilityProber
from fridasetup.models import DeviceArchitecture, HostCapabilities, PackageManager

SERVER_URL = (
    "https://github.com/frida/frida/releases/download/15.2.2/"
    "frida-server-15.2.2-android-arm64.xz"
)


@pytest.fixture
def out(tmp_path):
    return tmp_path / "artifacts"


def make_fetcher(adapter, runner, downloader, **caps):
    return ArtifactFetcher(
        adapter,
        CapabilityProber(runner, adapter),
        runner,
        downloader,
        capabilities=HostCapabilities(**caps),
    )


class TestArtifactNaming:
    """Tests for release file naming."""

    def test_filename(self):
        assert artifact_filename("15.2.2", "arm64") == "frida-server-15.2.2-android-arm64"

    def test_url(self):
        assert artifact_url("15.2.2", DeviceArchitecture.ARM64) == SERVER_URL

    def test_url_x86_64(self):
        url = artifact_url("16.0.0", "x86_64")
        assert url.endswith("/16.0.0/frida-server-16.0.0-android-x86_64.xz")

    def test_invalid_arch(self):
        with pytest.raises(ValueError):
            artifact_filename("15.2.2", "mips")


class TestArtifactFetcher:
    """Tests for ArtifactFetcher."""

    def test_download_and_extract(self, linux, out):
        runner = FakeRunner({"xz -d -k": xz_extractor(b"\x7fELF")})
        downloader = FakeDownloader()
        fetcher = make_fetcher(linux, runner, downloader, archive_tool="xz")

        location = fetcher.fetch("15.2.2", DeviceArchitecture.ARM64, out)

        dest = out / "frida-server"
        assert location.path == dest
        assert location.downloaded
        assert dest.read_bytes() == b"\x7fELF"
        assert dest.stat().st_mode & stat.S_IXUSR
        assert downloader.urls == [SERVER_URL]
        # archive and intermediate file are cleaned up
        assert sorted(p.name for p in out.iterdir()) == ["frida-server"]

    def test_existing_artifact_is_reused(self, linux, out):
        out.mkdir()
        dest = out / "frida-server"
        dest.write_bytes(b"previous")
        runner = FakeRunner()
        downloader = FakeDownloader()
        fetcher = make_fetcher(linux, runner, downloader, archive_tool="xz")

        location = fetcher.fetch("15.2.2", "arm64", out)

        assert location.exists
        assert not location.downloaded
        assert downloader.urls == []
        assert runner.commands == []
        assert dest.read_bytes() == b"previous"

    def test_probes_archive_tool_when_missing_from_capabilities(self, linux, out):
        runner = FakeRunner({
            "xz --version": 127,
            "unxz -k": xz_extractor(),
        })
        fetcher = make_fetcher(linux, runner, FakeDownloader())

        fetcher.fetch("15.2.2", "arm64", out)

        assert runner.ran("unxz --version")
        assert (out / "frida-server").is_file()

    def test_no_archive_tool_is_fatal_before_download(self, linux, out):
        runner = FakeRunner({"xz": 127, "unxz": 127})
        downloader = FakeDownloader()
        fetcher = make_fetcher(linux, runner, downloader)

        with pytest.raises(ArchiveToolUnavailable) as exc_info:
            fetcher.fetch("15.2.2", "arm64", out)

        assert exc_info.value.hint
        assert downloader.urls == []
        assert not (out / "frida-server").exists()

    def test_acquires_archive_tool_with_package_manager(self, linux, out):
        installed = []

        def install(command):
            installed.append(command)
            runner.respond("xz --version", 0)
            return 0

        runner = FakeRunner({
            "xz --version": 127,
            "unxz --version": 127,
            "apt-get install -y xz-utils": install,
            "xz -d -k": xz_extractor(),
        })
        fetcher = make_fetcher(
            linux, runner, FakeDownloader(), package_manager=PackageManager.APT
        )

        fetcher.fetch("15.2.2", "arm64", out)

        assert runner.ran("apt-get update")
        assert installed == [["apt-get", "install", "-y", "xz-utils"]]
        assert (out / "frida-server").is_file()

    def test_windows_downloads_portable_7zr(self, windows, out):
        runner = FakeRunner({"7z": 1, "7za": 1})
        downloader = FakeDownloader(fail={SEVEN_ZIP_URL})

        def seven_zip(command):
            if not os.path.exists(command[0]):
                return 1
            if len(command) > 1:
                archive = command[2]
                with open(archive[: -len(".xz")], "wb") as f:
                    f.write(b"MZ")
            return 0

        runner.respond(str(windows.portable_archive_tool), seven_zip)
        fetcher = make_fetcher(windows, runner, downloader)

        fetcher.fetch("15.2.2", "x86", out)

        assert downloader.urls[:2] == [SEVEN_ZIP_URL, SEVEN_ZIP_FALLBACK_URL]
        assert windows.portable_archive_tool.is_file()
        assert (out / "frida-server").read_bytes() == b"MZ"

    def test_download_failure(self, linux, out):
        downloader = FakeDownloader(fail={SERVER_URL})
        fetcher = make_fetcher(linux, FakeRunner(), downloader, archive_tool="xz")

        with pytest.raises(DownloadError) as exc_info:
            fetcher.fetch("15.2.2", "arm64", out)

        assert SERVER_URL in exc_info.value.message
        assert "manually" in exc_info.value.hint
        assert not (out / "frida-server").exists()
        assert list(out.iterdir()) == []

    def test_extraction_failure_leaves_no_artifact(self, linux, out):
        runner = FakeRunner({"xz -d -k": (1, "", "xz: File format not recognized")})
        fetcher = make_fetcher(linux, runner, FakeDownloader(b"not xz"), archive_tool="xz")

        with pytest.raises(ExtractionError) as exc_info:
            fetcher.fetch("15.2.2", "arm64", out)

        assert "File format not recognized" in exc_info.value.message
        assert list(out.iterdir()) == []

    def test_extraction_without_output_file(self, linux, out):
        """A tool that exits 0 but writes nothing is still a failure."""
        fetcher = make_fetcher(linux, FakeRunner(), FakeDownloader(), archive_tool="xz")

        with pytest.raises(ExtractionError):
            fetcher.fetch("15.2.2", "arm64", out)

        assert not (out / "frida-server").exists()

    def test_decompressed_file_is_moved_into_place(self, linux, out):
        out.mkdir()
        (out / "frida-server-15.2.2-android-arm64").write_bytes(b"\x7fELF-earlier")
        runner = FakeRunner()
        downloader = FakeDownloader()
        fetcher = make_fetcher(linux, runner, downloader, archive_tool="xz")

        location = fetcher.fetch("15.2.2", "arm64", out)

        assert not location.downloaded
        assert location.path.read_bytes() == b"\x7fELF-earlier"
        assert location.path.stat().st_mode & stat.S_IXUSR
        assert downloader.urls == []
        assert runner.commands == []
        assert sorted(p.name for p in out.iterdir()) == ["frida-server"]

    def test_failure_keeps_files_from_before_the_run(self, linux, out):
        out.mkdir()
        archive = out / "frida-server-15.2.2-android-arm64.xz"
        archive.write_bytes(b"earlier download")
        runner = FakeRunner({"xz -d -k": (1, "", "xz: Unexpected end of input")})
        fetcher = make_fetcher(linux, runner, FakeDownloader(), archive_tool="xz")

        with pytest.raises(ExtractionError):
            fetcher.fetch("15.2.2", "arm64", out)

        assert archive.exists()
        assert not (out / "frida-server").exists()
