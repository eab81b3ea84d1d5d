#!/usr/bin/env python3
"""
Frida Setup CLI

Installs Frida, frida-tools and objection, fetches Android platform-tools,
detects the connected device's architecture and deploys the matching
frida-server.

Usage:
    frida-setup
    python -m fridasetup.cli -a arm64
    python scripts/frida_setup.py -v 16.0.0 -a arm64
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from fridasetup.config import DEFAULT_FRIDA_VERSION, DEFAULT_TOOLS_VERSION, SetupConfig, set_config
from fridasetup.exceptions import SetupError
from fridasetup.models import DeviceArchitecture
from fridasetup.orchestrator import SetupOrchestrator, SetupReport

logger = logging.getLogger(__name__)


def print_header(title: str) -> None:
    """Print a formatted header."""
    print()
    print("=" * 40)
    print(f" {title}")
    print("=" * 40)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="frida-setup",
        description="Frida Setup Script",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  frida-setup                           # Auto-detect everything
  frida-setup -a arm64                  # Specify architecture
  frida-setup -v 16.0.0 -a arm64        # Specify version and arch
  frida-setup -y --start-server         # Unattended, start the server
        """,
    )
    parser.add_argument(
        "-v",
        "--frida-version",
        help=f"Frida version (default: {DEFAULT_FRIDA_VERSION})",
    )
    parser.add_argument(
        "-t",
        "--tools-version",
        help=f"Frida-tools version (default: {DEFAULT_TOOLS_VERSION})",
    )
    parser.add_argument(
        "-a",
        "--arch",
        choices=DeviceArchitecture.choices(),
        help="Android architecture (auto-detects if not specified)",
    )
    parser.add_argument(
        "-d",
        "--device",
        help="Device serial (default: ANDROID_SERIAL or first connected device)",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        help="YAML file with configuration overrides",
    )
    start_group = parser.add_mutually_exclusive_group()
    start_group.add_argument(
        "--start-server",
        dest="start_server",
        action="store_true",
        default=None,
        help="Start frida-server on the device after pushing it",
    )
    start_group.add_argument(
        "--no-start-server",
        dest="start_server",
        action="store_false",
        help="Do not start frida-server after pushing it",
    )
    parser.add_argument(
        "-y",
        "--non-interactive",
        action="store_true",
        help="Never prompt; use default answers",
    )
    parser.add_argument(
        "-j",
        "--json",
        action="store_true",
        help="Output the setup report as JSON",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def load_config(args: argparse.Namespace) -> SetupConfig:
    """Defaults < environment (.env included) < YAML file < command line."""
    config = SetupConfig.from_env()
    if args.config:
        config = config.with_yaml(args.config)
    return config.merge(
        frida_version=args.frida_version,
        tools_version=args.tools_version,
        arch=args.arch,
        device_id=args.device,
        start_server=args.start_server,
        interactive=False if args.non_interactive else None,
    )


def print_summary(report: SetupReport) -> None:
    deployment = report.deployment
    if deployment and not deployment.skipped:
        print_header("Setup Complete!")
        if not deployment.started:
            print("\nTo start Frida Server on your device, run:")
            print(f'  adb shell "{deployment.remote_path} &"')
            print("\nOr with root:")
            print(f'  adb shell "su -c {deployment.remote_path} &"')
        else:
            print("\nTest with: frida-ps -U")
    elif deployment:
        print("\nNo Android device connected! Connect one with USB debugging enabled and run:")
        for line in deployment.instructions:
            print(f"  {line}")

    print_header("Installation Summary")
    print(f"Frida Version:       {report.target.frida_version}")
    print(f"Device Architecture: {report.arch.value if report.arch else 'unknown'}")
    print(f"Install Method:      {report.install_strategy}")
    print(f"Platform Tools:      {report.adb}")
    print(f"Frida Server:        {report.artifact.path if report.artifact else 'n/a'}")
    if report.warnings:
        print("\nWarnings:")
        for warning in report.warnings:
            print(f"  ⚠ {warning}")
    print("\nRemember to source your shell rc file or open a NEW terminal!")


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[%(levelname)s] %(message)s",
    )
    load_dotenv()

    try:
        config = load_config(args)
    except SetupError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    set_config(config)

    print_header("Frida Setup Script")

    try:
        report = SetupOrchestrator().run()
    except KeyboardInterrupt:
        print("\nAborted.", file=sys.stderr)
        return 130
    except Exception:
        logger.exception("Unexpected error during setup")
        return 1

    if args.json:
        print(json.dumps(report.to_dict(), indent=2))

    if not report.success:
        print(f"\n❌ {report.error}", file=sys.stderr)
        if report.hint:
            print(f"   {report.hint}", file=sys.stderr)
        return 1

    print_summary(report)
    return 0


if __name__ == "__main__":
    sys.exit(main())
