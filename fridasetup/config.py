"""Setup configuration management."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from fridasetup.exceptions import ConfigurationError
from fridasetup.install.chain import DEFAULT_ENTRY_POINTS
from fridasetup.models import DeviceArchitecture, TargetSpec

DEFAULT_FRIDA_VERSION = "15.2.2"
DEFAULT_TOOLS_VERSION = "10.4.1"


def _parse_bool(value: Any, key: str) -> Optional[bool]:
    if value is None or isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("1", "true", "yes", "y", "on"):
        return True
    if text in ("0", "false", "no", "n", "off"):
        return False
    if text in ("", "ask"):
        return None
    raise ConfigurationError(f"Invalid boolean for {key}: {value}", config_key=key)


def _parse_number(value: Any, key: str) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"Invalid number for {key}: {value}", config_key=key)
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ConfigurationError(f"Invalid number for {key}: {value}", config_key=key) from None


def _parse_path(value: Any, key: str) -> Path:
    if not isinstance(value, (str, os.PathLike)):
        raise ConfigurationError(f"Invalid path for {key}: {value!r}", config_key=key)
    return Path(value).expanduser()


@dataclass
class SetupConfig:
    """Configuration for one setup run."""

    # Versions
    frida_version: str = DEFAULT_FRIDA_VERSION
    tools_version: str = DEFAULT_TOOLS_VERSION
    extra_packages: list[str] = field(default_factory=lambda: ["objection"])

    # Device
    arch: Optional[str] = None
    device_id: Optional[str] = None
    remote_path: str = "/data/local/tmp/frida-server"
    start_server: Optional[bool] = None
    grace_period: float = 2.0

    # Paths (None = platform default)
    venv_dir: Optional[Path] = None
    artifact_dir: Path = field(default_factory=Path.cwd)
    platform_tools_dir: Optional[Path] = None
    entry_points: list[str] = field(default_factory=lambda: list(DEFAULT_ENTRY_POINTS))

    # Behaviour
    interactive: Optional[bool] = None
    http_timeout: float = 60.0

    def __post_init__(self) -> None:
        """Normalize and validate fields."""
        if self.venv_dir is None:
            self.venv_dir = Path.home() / ".frida-venv"
        self.venv_dir = _parse_path(self.venv_dir, "venv_dir")
        self.artifact_dir = _parse_path(self.artifact_dir, "artifact_dir")
        if self.platform_tools_dir is not None:
            self.platform_tools_dir = _parse_path(self.platform_tools_dir, "platform_tools_dir")
        for key in ("grace_period", "http_timeout"):
            setattr(self, key, _parse_number(getattr(self, key), key))
        for key in ("extra_packages", "entry_points"):
            value = getattr(self, key)
            if isinstance(value, str) or not isinstance(value, (list, tuple)):
                raise ConfigurationError(f"{key} must be a list, got: {value!r}", config_key=key)
            setattr(self, key, [str(item) for item in value])
        self.validate()

    def validate(self) -> None:
        if self.arch and self.arch not in DeviceArchitecture.choices():
            raise ConfigurationError(
                f"Invalid architecture: {self.arch}. "
                f"Valid architectures: {', '.join(DeviceArchitecture.choices())}",
                config_key="arch",
            )
        if not self.frida_version:
            raise ConfigurationError("Frida version must not be empty", config_key="frida_version")
        if self.grace_period < 0:
            raise ConfigurationError("grace_period must be >= 0", config_key="grace_period")

    def target_spec(self) -> TargetSpec:
        return TargetSpec(
            frida_version=self.frida_version,
            tools_version=self.tools_version,
            arch=self.arch,
            extra_packages=tuple(self.extra_packages),
        )

    def merge(self, **overrides: Any) -> SetupConfig:
        """Return a copy with every non-None override applied."""
        known = {f.name for f in fields(self)}
        values = {f.name: getattr(self, f.name) for f in fields(self)}
        for key, value in overrides.items():
            if key not in known:
                raise ConfigurationError(f"Unknown configuration key: {key}", config_key=key)
            if value is not None:
                values[key] = value
        return SetupConfig(**values)

    @classmethod
    def from_env(cls, environ=None) -> SetupConfig:
        """Load configuration from environment variables."""
        env = os.environ if environ is None else environ
        config = cls(
            frida_version=env.get("FRIDA_VERSION", DEFAULT_FRIDA_VERSION),
            tools_version=env.get("FRIDA_TOOLS_VERSION", DEFAULT_TOOLS_VERSION),
            arch=env.get("FRIDA_ARCH") or None,
            device_id=env.get("ANDROID_SERIAL") or None,
            start_server=_parse_bool(env.get("FRIDA_SETUP_START_SERVER"), "FRIDA_SETUP_START_SERVER"),
        )

        if env_venv := env.get("FRIDA_SETUP_VENV"):
            config.venv_dir = Path(env_venv).expanduser()

        if env_artifacts := env.get("FRIDA_SETUP_ARTIFACT_DIR"):
            config.artifact_dir = Path(env_artifacts).expanduser()

        if env_timeout := env.get("FRIDA_SETUP_HTTP_TIMEOUT"):
            config.http_timeout = _parse_number(env_timeout, "FRIDA_SETUP_HTTP_TIMEOUT")

        return config

    def with_yaml(self, path: Path) -> SetupConfig:
        """
        Overlay values from a YAML file.

        The file is a flat mapping of SetupConfig field names, e.g.::

            frida_version: 16.1.4
            arch: arm64
            start_server: true
        """
        try:
            with open(path, "r") as f:
                data = yaml.safe_load(f) or {}
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file {path}: {e}", config_key="config") from e
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {path}: {e}", config_key="config") from e

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {path} must contain a mapping", config_key="config")

        for key in ("start_server", "interactive"):
            if key in data:
                data[key] = _parse_bool(data[key], key)
        for key in ("frida_version", "tools_version", "arch", "device_id", "remote_path"):
            if key in data and data[key] is not None:
                data[key] = str(data[key])
        return self.merge(**data)

    def to_dict(self) -> dict:
        """Convert configuration to dictionary."""
        return {
            "versions": {
                "frida": self.frida_version,
                "frida_tools": self.tools_version,
                "extra_packages": self.extra_packages,
            },
            "device": {
                "arch": self.arch,
                "device_id": self.device_id,
                "remote_path": self.remote_path,
                "start_server": self.start_server,
                "grace_period": self.grace_period,
            },
            "paths": {
                "venv_dir": str(self.venv_dir),
                "artifact_dir": str(self.artifact_dir),
                "platform_tools_dir": str(self.platform_tools_dir) if self.platform_tools_dir else None,
            },
            "http_timeout": self.http_timeout,
        }


# Global default configuration
_default_config: Optional[SetupConfig] = None


def get_config() -> SetupConfig:
    """Get the global configuration, creating from environment if needed."""
    global _default_config
    if _default_config is None:
        _default_config = SetupConfig.from_env()
    return _default_config


def set_config(config: SetupConfig) -> None:
    """Set the global configuration."""
    global _default_config
    _default_config = config
