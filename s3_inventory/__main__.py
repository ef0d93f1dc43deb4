"""Module entry point for the S3 inventory tool."""
import sys

from .cli import main


if __name__ == "__main__":
    sys.exit(main())
