#!/usr/bin/env python3
"""
Entry point for the Document Signer CLI.

Usage:
    python main.py sign scan.png --signature sig.png          # Sign a document
    python main.py sign *.jpg -s sig.png -f jpg -o signed/    # Sign a batch
    python main.py edit scan.png --rotate 90 --brightness 120 # Edit an image
    python main.py convert scan.png --format webp             # Convert format
"""

from docscan.cli import main

if __name__ == "__main__":
    main()
