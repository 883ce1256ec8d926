#!/usr/bin/env python
"""
taskforge CLI entry point.

Usage:
    python cli.py plan plan.json --run    # Decompose a plan and simulate it
    python cli.py --backend redis tasks   # List tasks in Redis
    python cli.py next                    # Select the next eligible task
    python cli.py summary                 # Counts and effort progress
"""

from taskforge.cli.app import main

if __name__ == "__main__":
    main()
