"""Main entry point for the listings CLI.

Usage:
    python -m listings.main --help
    listings --help  # If installed via pip/uv
"""

from listings.cli import main

if __name__ == "__main__":
    main()
