"""
Internal Module

⚠️ PRIVATE API - Do not use directly!
"""

__all__ = []
