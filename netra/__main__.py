"""
Entry point for running netra as a module.

Usage: python -m netra
"""

from netra.cli import main

if __name__ == "__main__":
    main()
