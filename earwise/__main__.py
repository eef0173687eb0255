"""
Entry point for running earwise as a module.

Usage:
    python -m earwise study
    python -m earwise stats
    python -m earwise --help
"""
from .cli.main import main

if __name__ == "__main__":
    main()
