"""
CLI layer for doccache.

Entry point::

    doccache config.yml --deltas deltas.jsonl
"""

from doccache.cli.app import app, main

__all__ = ["app", "main"]
