"""
Internal Storage Module

⚠️ PRIVATE API - Do not use directly!
"""

from stagedwrite._internal.storage.base import TableStore
from stagedwrite._internal.storage.iceberg_store import IcebergTableStore

__all__ = ["TableStore", "IcebergTableStore"]
