#!/usr/bin/env python3
"""
Roast Pipeline - command-line script

Runs the same commands as the installed ``roast-pipeline`` entry point
from a source checkout:

  python main.py import data/roast.alog --unit C
  python main.py validate data/roast.alog
  python main.py backfill --database-url sqlite:///roasts.db
"""

from roast_pipeline.cli import main


if __name__ == "__main__":
    main()
