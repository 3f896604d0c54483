#!/usr/bin/env python3
"""
Badge Access System - Main Entry Point
======================================

Identity-code validation and default badge access assignment for a
multi-site organization.

Usage:
    python main.py --help                 # Show available commands
    python main.py init                   # Initialize database
    python main.py demo                   # Load demo organization
    python main.py employees list         # List employees and access state
    python main.py employees hire ...     # Hire (code + default access)
    python main.py scenario               # Run rule engine walkthroughs
"""

import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cli.main import app

if __name__ == "__main__":
    app()
