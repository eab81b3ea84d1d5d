#!/usr/bin/env python3
"""
Frida Setup Script

Usage:
    # Auto-detect everything
    python scripts/frida_setup.py

    # Specify architecture
    python scripts/frida_setup.py -a arm64

    # Specify version and arch
    python scripts/frida_setup.py -v 16.0.0 -a arm64

    # Unattended run that starts the server afterwards
    python scripts/frida_setup.py -y --start-server
"""

from __future__ import annotations

import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from fridasetup.cli import main  # noqa: E402

if __name__ == "__main__":
    sys.exit(main())
