"""
Shared types for seeding operations.

This module contains types that are used across multiple modules to avoid circular imports.
"""

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from .errors import InvalidOptionError

# Sentinel batch size that disables chunking: the whole stream is sent as one chunk
UNBOUNDED = 'unbounded'

DEFAULT_BATCH_SIZE = 10_000
DEFAULT_TIMEOUT = 15.0

BatchSize = Union[int, str]


class MissingColumnPolicy(Enum):
    NULL = 'null'
    RAISE = 'raise'


class CopyFormat(Enum):
    CSV = 'csv'
    TEXT = 'text'


class RunState(Enum):
    IDLE = 'idle'
    TRANSACTION_OPEN = 'transaction_open'
    ENCODING = 'encoding'
    STREAMING = 'streaming'
    TABLE_DONE = 'table_done'
    COMMITTED = 'committed'
    ROLLED_BACK = 'rolled_back'
    CLOSED = 'closed'


@dataclass
class LoadResult:
    """Result of loading one table"""

    rows_loaded: int
    duration: float
    ops_per_second: float
    table_name: str
    adapter_type: str
    success: bool
    error: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        if self.success:
            return f'✅ Loaded {self.rows_loaded} rows to {self.table_name} in {self.duration:.2f}s'
        else:
            return f'❌ Failed to load to {self.table_name}: {self.error}'


@dataclass
class SeedResult:
    """Result of a complete seeding run (all tables, one transaction)"""

    success: bool
    duration: float
    tables: List[LoadResult] = field(default_factory=list)
    error: Optional[str] = None
    failed_table: Optional[str] = None
    exception: Optional[Exception] = None

    @property
    def rows_loaded(self) -> int:
        # Rows of a rolled back run never persist
        if not self.success:
            return 0
        return sum(result.rows_loaded for result in self.tables)

    def __bool__(self) -> bool:
        return self.success

    def __str__(self) -> str:
        if self.success:
            return f'✅ Seeded {self.rows_loaded} rows into {len(self.tables)} tables in {self.duration:.2f}s'
        elif self.failed_table:
            return f'❌ Seeding rolled back, {self.failed_table} failed: {self.error}'
        else:
            return f'❌ Seeding rolled back: {self.error}'


@dataclass
class RunOptions:
    """Options for a seeding run"""

    batch_size: BatchSize = DEFAULT_BATCH_SIZE
    timeout: Optional[float] = DEFAULT_TIMEOUT
    adapter: Any = None
    on_missing_column: MissingColumnPolicy = MissingColumnPolicy.NULL
    format: CopyFormat = CopyFormat.CSV

    def __post_init__(self):
        self.batch_size = validate_batch_size(self.batch_size)

        if self.timeout is not None:
            if (
                isinstance(self.timeout, bool)
                or not isinstance(self.timeout, (int, float))
                or math.isnan(self.timeout)
                or self.timeout <= 0
            ):
                raise InvalidOptionError(f'timeout must be a positive number of seconds or None, got: {self.timeout!r}')
            # An infinite budget is the same as no deadline
            if math.isinf(self.timeout):
                self.timeout = None

        try:
            self.on_missing_column = MissingColumnPolicy(self.on_missing_column)
        except ValueError as e:
            allowed = [policy.value for policy in MissingColumnPolicy]
            raise InvalidOptionError(
                f'on_missing_column must be one of {allowed}, got: {self.on_missing_column!r}'
            ) from e

        try:
            self.format = CopyFormat(self.format)
        except ValueError as e:
            allowed = [copy_format.value for copy_format in CopyFormat]
            raise InvalidOptionError(f'format must be one of {allowed}, got: {self.format!r}') from e

    def adapter_options(self) -> Dict[str, Any]:
        """Options handed to Adapter.call (the adapter itself is not included)"""
        return {
            'batch_size': self.batch_size,
            'timeout': self.timeout,
            'on_missing_column': self.on_missing_column,
            'format': self.format,
        }


def validate_batch_size(batch_size: Any) -> BatchSize:
    """Return batch_size if it is a positive integer or UNBOUNDED, else raise InvalidOptionError."""
    if batch_size == UNBOUNDED and isinstance(batch_size, str):
        return UNBOUNDED
    if isinstance(batch_size, bool) or not isinstance(batch_size, int) or batch_size <= 0:
        raise InvalidOptionError(f"batch_size must be a positive integer or '{UNBOUNDED}', got: {batch_size!r}")
    return batch_size
