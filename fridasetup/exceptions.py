"""Custom exceptions for the Frida setup workflow."""

from __future__ import annotations

from typing import Optional


class SetupError(Exception):
    """Base exception for all fatal setup errors."""

    def __init__(
        self,
        message: str,
        details: Optional[dict] = None,
        hint: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.hint = hint


class ConfigurationError(SetupError):
    """Raised when configuration is invalid."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        self.config_key = config_key
        super().__init__(message, {"config_key": config_key})


class ToolchainError(SetupError):
    """Raised when Python or pip cannot be provisioned."""

    def __init__(self, message: str, tool: str, hint: Optional[str] = None):
        self.tool = tool
        super().__init__(message, {"tool": tool}, hint=hint)


class InstallError(SetupError):
    """Raised when a package installation fails."""


class AllStrategiesFailed(InstallError):
    """Raised when every install strategy in the chain failed."""

    def __init__(self, packages: list[str], attempts: list, hint: Optional[str] = None):
        self.packages = packages
        self.attempts = attempts
        names = ", ".join(a.strategy.name for a in attempts) or "none"
        super().__init__(
            f"Failed to install {' '.join(packages)} after all attempts ({names})",
            {"packages": packages, "strategies": [a.strategy.name for a in attempts]},
            hint=hint,
        )


class DownloadError(SetupError):
    """Raised when a download fails."""

    def __init__(self, url: str, cause: Optional[Exception] = None, hint: Optional[str] = None):
        self.url = url
        self.cause = cause
        details = {"url": url}
        if cause:
            details["cause"] = str(cause)
        message = f"Failed to download {url}"
        if cause:
            message += f": {cause}"
        super().__init__(message, details, hint=hint)


class ExtractionError(SetupError):
    """Raised when an archive cannot be decompressed."""

    def __init__(self, message: str, archive: Optional[str] = None, hint: Optional[str] = None):
        self.archive = archive
        super().__init__(message, {"archive": archive}, hint=hint)


class ArchiveToolUnavailable(ExtractionError):
    """Raised when no decompression tool is present or acquirable."""


class DeploymentError(SetupError):
    """Raised when the artifact cannot be pushed to the device."""

    def __init__(self, message: str, device_id: Optional[str] = None, hint: Optional[str] = None):
        self.device_id = device_id
        super().__init__(message, {"device_id": device_id}, hint=hint)
