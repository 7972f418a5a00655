# __main__.py
"""
Command line entry point for the bootstrapper.
This allows running the module as: python -m bootstrapper
"""

from .cli import main
import sys

if __name__ == "__main__":
    sys.exit(main())
