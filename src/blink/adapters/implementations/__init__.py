# adapters/implementations/__init__.py
"""
Adapter implementations
"""

from .postgresql_adapter import PostgreSQLAdapter, PostgreSQLAdapterConfig
from .postgresql_insert_adapter import PostgreSQLInsertAdapter, PostgreSQLInsertConfig

__all__ = ['PostgreSQLAdapter', 'PostgreSQLAdapterConfig', 'PostgreSQLInsertAdapter', 'PostgreSQLInsertConfig']
