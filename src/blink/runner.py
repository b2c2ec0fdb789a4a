"""
Seeding runner.

Loads every table declared in a Seeder, in declaration order, inside a single
transaction. Either every table commits or, on the first failure, the whole
transaction is rolled back and nothing persists.
"""

import logging
import time
from dataclasses import fields
from typing import Any, List, Optional, Tuple

from . import config as destination_config
from .adapters.registry import resolve_adapter
from .errors import BlinkError, InvalidOptionError, TransactionError
from .seeder import Seeder
from .types import LoadResult, RunOptions, RunState, SeedResult

logger = logging.getLogger(__name__)

RUN_OPTION_NAMES = {f.name for f in fields(RunOptions)}


def _is_connection(destination: Any) -> bool:
    return all(hasattr(destination, name) for name in ('cursor', 'commit', 'rollback'))


class SeedRunner:
    """
    Drives one seeding run.

    State: IDLE -> TRANSACTION_OPEN -> (ENCODING -> STREAMING -> TABLE_DONE)
    per table -> COMMITTED | ROLLED_BACK -> CLOSED
    """

    def __init__(self, seeder: Seeder, options: Optional[RunOptions] = None) -> None:
        if not isinstance(seeder, Seeder):
            raise InvalidOptionError(f'run() expects a Seeder, got: {type(seeder).__name__}')

        self.seeder = seeder
        self.options = options or RunOptions()
        # Resolve before any connection is opened
        self.adapter = resolve_adapter(self.options.adapter)
        self.state = RunState.IDLE
        self._current_table: Optional[str] = None

    def _transition(self, state: RunState, table_name: Optional[str] = None) -> None:
        self.state = state
        if table_name:
            logger.debug(f'Run state: {state.value} ({table_name})')
        else:
            logger.debug(f'Run state: {state.value}')

    def run(self, destination: Any) -> SeedResult:
        """
        Load all tables into destination.

        Args:
            destination: An open DB-API connection (left open), or a
                PostgreSQLConfig, config dict or DSN string (opened and closed here)

        Returns:
            SeedResult; destination errors never propagate as exceptions
        """
        openable = (destination_config.PostgreSQLConfig, dict, str)
        if not (_is_connection(destination) or isinstance(destination, openable)):
            raise InvalidOptionError(
                'destination must be a connection, PostgreSQLConfig, dict or DSN string, '
                f'got: {type(destination).__name__}'
            )

        start_time = time.time()
        table_names = self.seeder.table_names
        logger.info(f'Seeding {len(table_names)} tables: {table_names}')

        try:
            connection, owned = self._open(destination)
        except Exception as e:
            logger.error(f'Failed to connect to destination: {str(e)}')
            return self._failure(start_time, [], TransactionError(f'Failed to connect: {e}', cause=e))

        results: List[LoadResult] = []
        restore_autocommit = False
        try:
            if getattr(connection, 'autocommit', False):
                connection.autocommit = False
                restore_autocommit = True

            self._transition(RunState.TRANSACTION_OPEN)
            deadline = time.monotonic() + self.options.timeout if self.options.timeout is not None else None

            for table_name, records in self.seeder.tables:
                results.append(self._load_table(connection, table_name, records, deadline))

            connection.commit()
            self._transition(RunState.COMMITTED)

        except KeyboardInterrupt:
            logger.info(f'Seeding cancelled by user after {len(results)} tables, rolling back')
            self._rollback(connection)
            raise

        except Exception as e:
            if isinstance(e, TransactionError):
                error = e
            else:
                error = TransactionError(str(e), table_name=self._current_table, cause=e)
            logger.warning(f'Seeding failed, rolling back: {error.message}')
            self._rollback(connection)
            return self._failure(start_time, results, error)

        finally:
            if restore_autocommit:
                connection.autocommit = True
            if owned:
                connection.close()
            self._transition(RunState.CLOSED)

        result = SeedResult(success=True, duration=time.time() - start_time, tables=results)
        logger.info(str(result))
        return result

    def _load_table(self, connection: Any, table_name: str, records: Any, deadline: Optional[float]) -> LoadResult:
        self._current_table = table_name
        self._transition(RunState.ENCODING, table_name)

        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TransactionError(
                    f'timeout of {self.options.timeout}s exceeded before loading {table_name}', table_name=table_name
                )
            if hasattr(self.adapter, 'apply_timeout'):
                self.adapter.apply_timeout(connection, remaining)

        self._transition(RunState.STREAMING, table_name)
        result = self.adapter.call(records, table_name, connection, self.options.adapter_options())
        result = self._normalize_result(result, table_name)

        if not result.success:
            cause = result.metadata.pop('exception', None)
            raise TransactionError(result.error or 'Unknown error', table_name=table_name, cause=cause)

        self._transition(RunState.TABLE_DONE, table_name)
        self._current_table = None
        return result

    def _normalize_result(self, result: Any, table_name: str) -> LoadResult:
        """
        Adapters outside the Adapter hierarchy may return anything. A returned
        exception or False is a failure; any other value counts as success.
        """
        if isinstance(result, LoadResult):
            return result

        adapter_type = type(self.adapter).__name__
        if isinstance(result, BaseException) or result is False:
            if result is False:
                error, metadata = f'{adapter_type} returned False', {'result': result}
            else:
                error, metadata = str(result) or type(result).__name__, {'exception': result}
            return LoadResult(
                rows_loaded=0,
                duration=0.0,
                ops_per_second=0,
                table_name=table_name,
                adapter_type=adapter_type,
                success=False,
                error=error,
                metadata=metadata,
            )

        return LoadResult(
            rows_loaded=0,
            duration=0.0,
            ops_per_second=0,
            table_name=table_name,
            adapter_type=adapter_type,
            success=True,
            metadata={'result': result},
        )

    def _open(self, destination: Any) -> Tuple[Any, bool]:
        if _is_connection(destination):
            return destination, False
        return destination_config.connect(destination), True

    def _rollback(self, connection: Any) -> None:
        try:
            connection.rollback()
        except Exception as e:
            # The connection may already be gone; the server discards the transaction then
            logger.error(f'Rollback failed: {str(e)}')
        self._transition(RunState.ROLLED_BACK)

    def _failure(self, start_time: float, results: List[LoadResult], error: BlinkError) -> SeedResult:
        result = SeedResult(
            success=False,
            duration=time.time() - start_time,
            tables=results,
            error=error.message,
            failed_table=getattr(error, 'table_name', None),
            exception=error,
        )
        logger.error(str(result))
        return result


def run(seeder: Seeder, destination: Any, **options: Any) -> SeedResult:
    """
    Load all tables declared in seeder into destination in one transaction.

    Options:
        batch_size: Records per chunk (default 10,000), or UNBOUNDED to send
            each table as one chunk
        timeout: Seconds the whole run may take (default 15), None to disable
        adapter: Adapter instance, Adapter subclass or registered adapter name
            (default: 'postgresql', COPY based)
        on_missing_column: 'null' (default) encodes columns missing from a
            record as NULL, 'raise' fails the run instead
        format: 'csv' (default) or 'text' COPY dialect

    Raises:
        InvalidOptionError: For unknown or invalid options
        AdapterContractError: If the adapter does not provide call()

    Returns:
        SeedResult. Destination failures roll back every table and come back as
        SeedResult(success=False) rather than exceptions.
    """
    unknown = sorted(set(options) - RUN_OPTION_NAMES)
    if unknown:
        raise InvalidOptionError(f'Unknown run options: {unknown}. Supported: {sorted(RUN_OPTION_NAMES)}')

    return SeedRunner(seeder, RunOptions(**options)).run(destination)
