"""Command line interface."""
from .main import build_parser, parse_args, run_cli

__all__ = ['build_parser', 'parse_args', 'run_cli']
