"""Utility functions and types for pyposterior.

This module contains utility functions, type definitions and helper classes
used throughout the pyposterior package:

- Type annotations for arrays and protocols
- Variate shapes and variate validation
- Per-id partitioning of random number streams
- Centrality-seeded k-means clustering

These utilities support the density transformation and sampling functionality.
"""
