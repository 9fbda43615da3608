"""
FQL: a path-like query language for hierarchical document stores.

This package interprets already-parsed FQL queries. It classifies them,
walks them into store references, and runs them as one-shot reads or
live subscriptions.
"""

__version__ = "0.1.0"
