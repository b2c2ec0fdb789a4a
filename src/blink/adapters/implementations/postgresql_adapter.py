from dataclasses import dataclass
from typing import Any, Dict, Tuple

from ...encoder import ChunkStream, encode_chunks, peek_columns
from ...types import DEFAULT_BATCH_SIZE, CopyFormat, MissingColumnPolicy
from ..base import Adapter, Records
from ._postgres_helpers import build_copy_sql, describe_copy_error, set_statement_timeout


@dataclass
class PostgreSQLAdapterConfig:
    """Configuration for the PostgreSQL COPY adapter"""

    # Size of each read() copy_expert issues against the chunk stream
    copy_buffer_size: int = 65536


class PostgreSQLAdapter(Adapter[PostgreSQLAdapterConfig]):
    """Streams records into PostgreSQL with COPY ... FROM STDIN, one chunk at a time."""

    NAME = 'postgresql'

    def _validate_config(self) -> None:
        if self.config.copy_buffer_size <= 0:
            raise ValueError(f'copy_buffer_size must be positive, got: {self.config.copy_buffer_size}')

    def _call_impl(
        self, records: Records, table_name: str, destination: Any, options: Dict[str, Any]
    ) -> Tuple[int, Dict[str, Any]]:
        columns, rows = peek_columns(records)
        if not columns:
            self.logger.info(f'No records for {table_name}, skipping')
            return 0, {'operation': 'skip_empty', 'columns': [], 'chunks': 0}

        batch_size = options.get('batch_size', DEFAULT_BATCH_SIZE)
        copy_format = CopyFormat(options.get('format', CopyFormat.CSV))
        on_missing_column = MissingColumnPolicy(options.get('on_missing_column', MissingColumnPolicy.NULL))

        chunk_sizes = []
        chunks = encode_chunks(
            rows,
            columns,
            batch_size,
            copy_format=copy_format,
            on_missing_column=on_missing_column,
            table_name=table_name,
            on_chunk=chunk_sizes.append,
        )
        stream = ChunkStream(chunks)
        copy_sql = build_copy_sql(table_name, columns, copy_format)

        with destination.cursor() as cursor:
            self.logger.debug(f'COPY into {table_name} with columns {columns}')
            try:
                cursor.copy_expert(copy_sql, stream, size=self.config.copy_buffer_size)
            except Exception as e:
                if stream.error is e:
                    raise
                if stream.error is not None:
                    raise stream.error from e
                raise describe_copy_error(e, table_name) from e

        return sum(chunk_sizes), {
            'operation': 'copy',
            'columns': columns,
            'chunks': len(chunk_sizes),
            'format': copy_format.value,
        }

    def apply_timeout(self, destination: Any, seconds: float) -> None:
        set_statement_timeout(destination, seconds)
