"""
Base class for seeding adapters.

An adapter moves one table's records into the destination over the
connection and transaction opened by the runner. Subclasses implement
_call_impl(); call() adds timing, logging and error capture so that failures
come back as an unsuccessful LoadResult instead of an exception.
"""

import logging
import time
from abc import ABC, abstractmethod
from logging import Logger
from typing import Any, Dict, Generic, Iterable, Mapping, Optional, Tuple, TypeVar

from ..types import LoadResult

# Type variable for configuration classes
TConfig = TypeVar('TConfig')

Records = Iterable[Mapping[str, Any]]


class Adapter(ABC, Generic[TConfig]):
    """
    Abstract base class for all adapters.

    The contract is call(records, table_name, destination, options) -> LoadResult.
    The runner checks that an adapter provides it before touching the destination.
    """

    # Registry name, derived from the class name when not set
    NAME: Optional[str] = None

    def __init__(self, config: Optional[Dict[str, Any]] = None) -> None:
        self.logger: Logger = logging.getLogger(f'{self.__class__.__name__}')
        self.config: TConfig = self._parse_config(dict(config or {}))
        self._validate_config()

    @property
    def adapter_type(self) -> str:
        return self.NAME or self.__class__.__name__.replace('Adapter', '').lower()

    def _parse_config(self, config: Dict[str, Any]) -> TConfig:
        """
        Parse configuration into adapter-specific format.
        Generic implementation that works with dataclass configs.
        """
        for base in getattr(self, '__orig_bases__', ()):
            if hasattr(base, '__args__') and base.__args__:
                config_type = base.__args__[0]
                # Check if it's a real type (not TypeVar)
                if hasattr(config_type, '__name__') and not isinstance(config_type, TypeVar):
                    try:
                        return config_type(**config)
                    except TypeError as e:
                        raise ValueError(f'Invalid {self.__class__.__name__} configuration: {e}') from e

        # Fallback for adapters without a typed config
        return config  # type: ignore

    def _validate_config(self) -> None:
        """Hook for adapter-specific configuration checks, called once the config is parsed."""
        pass

    @abstractmethod
    def _call_impl(
        self, records: Records, table_name: str, destination: Any, options: Dict[str, Any]
    ) -> Tuple[int, Dict[str, Any]]:
        """
        Implementation-specific transfer logic.
        Returns (rows loaded, adapter metadata).
        """
        pass

    def call(self, records: Records, table_name: str, destination: Any, options: Dict[str, Any]) -> LoadResult:
        """
        Load one table's records into the destination.

        Never raises for destination or encoding failures: they are returned as
        a LoadResult with success=False and the error text.
        """
        start_time = time.time()

        try:
            rows_loaded, metadata = self._call_impl(records, table_name, destination, options)
            duration = time.time() - start_time
            self.logger.info(f'Loaded {rows_loaded} rows into {table_name} in {duration:.2f}s')

            return LoadResult(
                rows_loaded=rows_loaded,
                duration=duration,
                ops_per_second=round(rows_loaded / duration, 2) if duration > 0 else 0,
                table_name=table_name,
                adapter_type=self.adapter_type,
                success=True,
                metadata=metadata,
            )

        except Exception as e:
            self.logger.error(f'Failed to load {table_name}: {str(e)}')
            return LoadResult(
                rows_loaded=0,
                duration=time.time() - start_time,
                ops_per_second=0,
                table_name=table_name,
                adapter_type=self.adapter_type,
                success=False,
                error=str(e),
                metadata={'exception': e},
            )

    def apply_timeout(self, destination: Any, seconds: float) -> None:
        """Bound the time the destination may spend on the rest of the run. No-op by default."""
        pass

    def __repr__(self) -> str:
        return f'{self.__class__.__name__}(config={self.config!r})'
