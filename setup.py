#!/usr/bin/env python3
"""
Setup shim for Calcigraph
Simple pip-based installation that works with conda environments
"""

from setuptools import setup

# This setup.py is kept for compatibility but pyproject.toml handles the configuration
setup()
