"""
Adapters move a table's records into the destination.

Usage:
    from blink.adapters import Adapter

    class LoggingAdapter(Adapter):
        def _call_impl(self, records, table_name, destination, options):
            rows = list(records)
            ...
            return len(rows), {'operation': 'custom'}

    seeder.run(connection, adapter=LoggingAdapter())

The default adapter streams records with PostgreSQL's COPY command.
"""

from .base import Adapter
from .registry import (
    AdapterRegistry,
    create_adapter,
    get_adapter_class,
    get_available_adapters,
    resolve_adapter,
    validate_adapter,
)

__all__ = [
    'Adapter',
    'AdapterRegistry',
    'create_adapter',
    'get_adapter_class',
    'get_available_adapters',
    'resolve_adapter',
    'validate_adapter',
]
