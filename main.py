#!/usr/bin/env python3
"""
main.py — Quick-start entry point.

Put your tiles in a folder next to the reference image and run:

    python main.py build --dir tiles/ --ref tiles/portrait.jpg

Or see every option:

    python -m tile_mosaic.cli build --help
    python -m tile_mosaic.cli plan portrait.jpg --cols 70 --rows 70
"""

from tile_mosaic.cli import app

if __name__ == "__main__":
    app()
