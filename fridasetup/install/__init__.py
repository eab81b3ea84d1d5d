"""Python toolchain bootstrap and the installer strategy chain."""

from fridasetup.install.chain import (
    DEFAULT_ENTRY_POINTS,
    InstallerChain,
    InstallOutcome,
    IsolatedEnvironmentStrategy,
    StrategyAttempt,
    canonical_strategies,
)
from fridasetup.install.toolchain import PythonToolchain

__all__ = [
    "DEFAULT_ENTRY_POINTS",
    "InstallerChain",
    "InstallOutcome",
    "IsolatedEnvironmentStrategy",
    "StrategyAttempt",
    "canonical_strategies",
    "PythonToolchain",
]
