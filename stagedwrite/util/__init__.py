"""
stagedwrite Utility Module

Provides recovery tools.
"""

from stagedwrite.util.recovery import RecoveryTool

__all__ = [
    'RecoveryTool',
]
