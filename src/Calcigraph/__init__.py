# -*- coding: utf-8 -*-
"""
Calcigraph: functional connectivity graphs from two-photon calcium imaging.

This package aligns fluorescence traces to the stimulus and shutter channels,
detects calcium events, and infers a directed graph of neuron-to-neuron and
stimulus-to-neuron functional connections from the timing of those events.
"""

# PEP 396 style version marker
__version__ = "0.1.0"
__license__ = "AGPL-3.0-or-later"

__all__ = ["__version__", "__license__"]
