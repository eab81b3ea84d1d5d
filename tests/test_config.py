"""
Tests for configuration loading and the command line

Run with: pytest tests/test_config.py -v
"""

import os
import sys
from pathlib import Path

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fridasetup.cli import build_parser, load_config
from fridasetup.config import SetupConfig, get_config, set_config
from fridasetup.exceptions import ConfigurationError

ENV_KEYS = [
    "FRIDA_VERSION",
    "FRIDA_TOOLS_VERSION",
    "FRIDA_ARCH",
    "ANDROID_SERIAL",
    "FRIDA_SETUP_VENV",
    "FRIDA_SETUP_ARTIFACT_DIR",
    "FRIDA_SETUP_START_SERVER",
    "FRIDA_SETUP_HTTP_TIMEOUT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)


class TestSetupConfig:
    """Tests for SetupConfig."""

    def test_defaults(self):
        config = SetupConfig()

        assert config.frida_version == "15.2.2"
        assert config.tools_version == "10.4.1"
        assert config.arch is None
        assert config.start_server is None
        assert config.venv_dir == Path.home() / ".frida-venv"
        assert config.remote_path == "/data/local/tmp/frida-server"
        assert config.target_spec().packages == [
            "frida==15.2.2", "frida-tools==10.4.1", "objection",
        ]

    def test_invalid_arch(self):
        with pytest.raises(ConfigurationError) as exc_info:
            SetupConfig(arch="mips")
        assert exc_info.value.config_key == "arch"

    def test_from_env(self, tmp_path):
        config = SetupConfig.from_env({
            "FRIDA_VERSION": "16.0.0",
            "FRIDA_ARCH": "x86",
            "ANDROID_SERIAL": "emulator-5554",
            "FRIDA_SETUP_START_SERVER": "yes",
            "FRIDA_SETUP_VENV": str(tmp_path / "venv"),
            "FRIDA_SETUP_HTTP_TIMEOUT": "5",
        })

        assert config.frida_version == "16.0.0"
        assert config.tools_version == "10.4.1"
        assert config.arch == "x86"
        assert config.device_id == "emulator-5554"
        assert config.start_server is True
        assert config.venv_dir == tmp_path / "venv"
        assert config.http_timeout == 5.0

    def test_from_env_bad_timeout(self):
        with pytest.raises(ConfigurationError):
            SetupConfig.from_env({"FRIDA_SETUP_HTTP_TIMEOUT": "soon"})

    def test_from_env_bad_bool(self):
        with pytest.raises(ConfigurationError):
            SetupConfig.from_env({"FRIDA_SETUP_START_SERVER": "maybe"})

    def test_merge_ignores_none(self):
        config = SetupConfig(frida_version="16.0.0").merge(frida_version=None, arch="arm")

        assert config.frida_version == "16.0.0"
        assert config.arch == "arm"

    def test_merge_unknown_key(self):
        with pytest.raises(ConfigurationError):
            SetupConfig().merge(colour="blue")

    def test_yaml_overlay(self, tmp_path):
        path = tmp_path / "frida.yaml"
        path.write_text("frida_version: 16.1\narch: arm64\nstart_server: false\n")

        config = SetupConfig().with_yaml(path)

        assert config.frida_version == "16.1"
        assert config.arch == "arm64"
        assert config.start_server is False

    def test_yaml_must_be_mapping(self, tmp_path):
        path = tmp_path / "frida.yaml"
        path.write_text("- arm64\n")

        with pytest.raises(ConfigurationError):
            SetupConfig().with_yaml(path)

    def test_yaml_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError):
            SetupConfig().with_yaml(tmp_path / "nope.yaml")

    @pytest.mark.parametrize("text, key", [
        ("grace_period: abc\n", "grace_period"),
        ("http_timeout: [1]\n", "http_timeout"),
        ("grace_period: true\n", "grace_period"),
        ("extra_packages: objection\n", "extra_packages"),
        ("venv_dir: 12\n", "venv_dir"),
        ("start_server: maybe\n", "start_server"),
    ])
    def test_yaml_bad_values(self, tmp_path, text, key):
        path = tmp_path / "frida.yaml"
        path.write_text(text)

        with pytest.raises(ConfigurationError) as exc_info:
            SetupConfig().with_yaml(path)

        assert exc_info.value.config_key == key

    def test_yaml_values_are_coerced(self, tmp_path):
        path = tmp_path / "frida.yaml"
        path.write_text(
            "frida_version: 16\n"
            "grace_period: '3'\n"
            "interactive: 'no'\n"
            "venv_dir: ~/frida-env\n"
            "extra_packages: [objection, 2]\n"
        )

        config = SetupConfig().with_yaml(path)

        assert config.frida_version == "16"
        assert config.grace_period == 3.0
        assert config.interactive is False
        assert config.venv_dir == Path("~/frida-env").expanduser()
        assert config.extra_packages == ["objection", "2"]

    def test_global_config(self):
        config = SetupConfig(frida_version="16.0.0")
        set_config(config)
        try:
            assert get_config() is config
        finally:
            set_config(None)

    def test_to_dict(self):
        data = SetupConfig(arch="arm").to_dict()
        assert data["versions"]["frida"] == "15.2.2"
        assert data["device"]["arch"] == "arm"


class TestCommandLine:
    """Tests for argument parsing and precedence."""

    def test_help_exits_zero(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["-h"])

        assert exc_info.value.code == 0
        assert "--arch" in capsys.readouterr().out

    def test_unknown_flag(self):
        with pytest.raises(SystemExit) as exc_info:
            build_parser().parse_args(["--bogus"])
        assert exc_info.value.code != 0

    def test_invalid_arch_choice(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["-a", "mips"])

    def test_start_flags_are_exclusive(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--start-server", "--no-start-server"])

    def test_defaults_leave_config_untouched(self):
        config = load_config(build_parser().parse_args([]))

        assert config.frida_version == "15.2.2"
        assert config.start_server is None
        assert config.interactive is None

    def test_precedence(self, tmp_path, monkeypatch):
        """Command line beats YAML beats environment."""
        monkeypatch.setenv("FRIDA_VERSION", "14.0.0")
        monkeypatch.setenv("FRIDA_TOOLS_VERSION", "9.0.0")
        monkeypatch.setenv("FRIDA_ARCH", "x86")
        path = tmp_path / "frida.yaml"
        path.write_text("tools_version: 11.0.0\narch: arm\n")

        args = build_parser().parse_args(["-c", str(path), "-a", "arm64", "-y", "--no-start-server"])
        config = load_config(args)

        assert config.frida_version == "14.0.0"
        assert config.tools_version == "11.0.0"
        assert config.arch == "arm64"
        assert config.start_server is False
        assert config.interactive is False
