#!/usr/bin/env python3
"""
ThreatWatch - National Threat Level and Security News Monitor
=============================================================

Main application entry point.

Usage:
    python main.py --help                    # Show all commands
    python main.py check-config              # Validate configuration
    python main.py init-db                   # Initialize database
    python main.py refresh-feeds             # Run one ingestion cycle
    python main.py threat-level              # Show the current threat level
    python main.py watch                     # Stream change events
"""

import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent))

from threatwatch.cli import main

if __name__ == "__main__":
    main()
