from dataclasses import dataclass
from typing import Any, Dict, Tuple

from psycopg2.extras import execute_values

from ...encoder import chunked, peek_columns
from ...errors import EncodingError
from ...types import DEFAULT_BATCH_SIZE, MissingColumnPolicy
from ..base import Adapter, Records
from ._postgres_helpers import build_insert_sql, prepare_insert_rows, set_statement_timeout


@dataclass
class PostgreSQLInsertConfig:
    """Configuration for the batched INSERT adapter"""

    # Rows per statement generated by execute_values within one chunk
    page_size: int = 1000


class PostgreSQLInsertAdapter(Adapter[PostgreSQLInsertConfig]):
    """
    Loads records with multi-row INSERT statements.

    Slower than COPY, but works through poolers and proxies that do not
    support the COPY sub-protocol. Chunking follows the same batch_size option.
    """

    NAME = 'postgresql_insert'

    def _validate_config(self) -> None:
        if self.config.page_size <= 0:
            raise ValueError(f'page_size must be positive, got: {self.config.page_size}')

    def _call_impl(
        self, records: Records, table_name: str, destination: Any, options: Dict[str, Any]
    ) -> Tuple[int, Dict[str, Any]]:
        columns, rows = peek_columns(records)
        if not columns:
            self.logger.info(f'No records for {table_name}, skipping')
            return 0, {'operation': 'skip_empty', 'columns': [], 'chunks': 0}

        batch_size = options.get('batch_size', DEFAULT_BATCH_SIZE)
        on_missing_column = MissingColumnPolicy(options.get('on_missing_column', MissingColumnPolicy.NULL))
        insert_sql = build_insert_sql(table_name, columns)

        rows_loaded = 0
        chunk_count = 0
        with destination.cursor() as cursor:
            for chunk in chunked(rows, batch_size):
                if on_missing_column == MissingColumnPolicy.RAISE:
                    _check_columns(chunk, columns, table_name)
                execute_values(
                    cursor, insert_sql, prepare_insert_rows(chunk, columns), page_size=self.config.page_size
                )
                rows_loaded += len(chunk)
                chunk_count += 1
                self.logger.debug(f'Inserted chunk {chunk_count} into {table_name}: {len(chunk)} rows')

        return rows_loaded, {'operation': 'insert', 'columns': columns, 'chunks': chunk_count}

    def apply_timeout(self, destination: Any, seconds: float) -> None:
        set_statement_timeout(destination, seconds)


def _check_columns(chunk, columns, table_name):
    for record in chunk:
        for column in columns:
            if column not in record:
                raise EncodingError(
                    f"record is missing column '{column}' (columns: {columns})", table_name=table_name, column=column
                )
