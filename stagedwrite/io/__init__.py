"""
stagedwrite I/O Module

Per-attempt writers into staging tables.
"""

from stagedwrite.io.writer import AttemptWriter, WriterState

__all__ = ["AttemptWriter", "WriterState"]
