#!/usr/bin/env python3
"""
Calcigraph - functional connectivity graphs from two-photon calcium imaging

This module serves as the entry point for the package when run as:
    python -m Calcigraph

It parses command line arguments, configures logging and runs the requested command.
"""

import sys
import logging

# Set up logging before importing the rest of the package
from Calcigraph.shared.logging_config import setup_logging


def main(argv=None):
    """Main entry point for the application."""
    from Calcigraph.application.cli.main import parse_args, run_cli

    args = parse_args(argv)

    # Show version and exit if requested
    if args.version:
        from Calcigraph import __version__
        print(f"Calcigraph version {__version__}")
        return 0

    setup_logging(dev_mode=args.dev or args.verbose, log_dir=args.log_dir)
    logger = logging.getLogger('Calcigraph.__main__')

    logger.info("Starting Calcigraph...")
    logger.debug(f"Command line arguments: {args}")

    return run_cli(args)


if __name__ == "__main__":
    sys.exit(main())
