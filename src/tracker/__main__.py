"""
Entry point for running the tracker as a module.

Usage:
    python -m src.tracker next
    python -m src.tracker stats
    python -m src.tracker --help
"""
from .tracker_cli import main

if __name__ == "__main__":
    main()
