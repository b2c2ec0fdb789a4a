"""Blink - fast database seeding with PostgreSQL COPY."""

from blink.adapters import Adapter, AdapterRegistry
from blink.config import PostgreSQLConfig
from blink.errors import (
    AdapterContractError,
    BlinkError,
    BuilderSignatureError,
    DeclarationError,
    DuplicateKeyError,
    EncodingError,
    InvalidOptionError,
    MissingBuilderError,
    TransactionError,
)
from blink.readers import from_csv, from_json
from blink.runner import SeedRunner, run
from blink.seeder import BuilderRegistry, Seeder, declare_context, declare_table, new
from blink.types import UNBOUNDED, LoadResult, RunOptions, SeedResult

__all__ = [
    'Adapter',
    'AdapterContractError',
    'AdapterRegistry',
    'BlinkError',
    'BuilderRegistry',
    'BuilderSignatureError',
    'DeclarationError',
    'DuplicateKeyError',
    'EncodingError',
    'InvalidOptionError',
    'LoadResult',
    'MissingBuilderError',
    'PostgreSQLConfig',
    'RunOptions',
    'SeedResult',
    'SeedRunner',
    'Seeder',
    'TransactionError',
    'UNBOUNDED',
    'declare_context',
    'declare_table',
    'from_csv',
    'from_json',
    'new',
    'run',
]

__version__ = '0.1.0'
