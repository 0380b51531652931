#!/usr/bin/env python3
"""
Main script for running a calibration analysis.

Usage: ``python main.py standard.csv --session session.csv --height-diff 5``
"""

import os
import sys

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from metrocal.cli import main

if __name__ == "__main__":
    sys.exit(main())
