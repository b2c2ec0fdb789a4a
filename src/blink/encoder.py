"""
Bulk-load encoder for PostgreSQL COPY.

Turns a stream of records into chunks of delimited text that COPY ... FROM
STDIN parses back into the original values. Records are pulled lazily and
encoded one chunk at a time, so only a single chunk is held in memory no
matter how long the stream is.

Wire format (CSV dialect, the default):
    - rows are terminated by a newline, fields are joined by '|'
    - NULL is the unquoted token \\N
    - fields containing '|', '"', newline, carriage return or backslash are
      wrapped in double quotes with embedded quotes doubled
    - a string that is exactly \\N is always quoted so it reads back as text

The text dialect follows PostgreSQL's default COPY format instead, escaping
special characters with backslashes.
"""

import io
import json
import logging
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from itertools import chain, islice
from typing import Any, Callable, Iterable, Iterator, List, Mapping, Optional, Tuple

import pyarrow as pa

from .errors import EncodingError
from .types import UNBOUNDED, BatchSize, CopyFormat, MissingColumnPolicy

logger = logging.getLogger(__name__)

DELIMITER = '|'
QUOTE = '"'
NULL_TOKEN = '\\N'
ROW_TERMINATOR = '\n'

# Characters that force quoting in the CSV dialect
CSV_SPECIAL_CHARS = (DELIMITER, QUOTE, '\n', '\r', '\\')

# Backslash must be escaped first in the text dialect
TEXT_ESCAPES = (
    ('\\', '\\\\'),
    ('\n', '\\n'),
    ('\r', '\\r'),
    ('\t', '\\t'),
    (DELIMITER, '\\' + DELIMITER),
)

_MISSING = object()


def iter_records(records: Any) -> Iterator[Mapping[str, Any]]:
    """Iterate over a record stream. Arrow tables and record batches are read batch by batch."""
    if isinstance(records, pa.Table):
        return chain.from_iterable(batch.to_pylist() for batch in records.to_batches())
    if isinstance(records, pa.RecordBatch):
        return iter(records.to_pylist())
    if records is None:
        return iter(())
    if isinstance(records, Mapping) or isinstance(records, (str, bytes)):
        raise EncodingError(f'records must be an iterable of mappings, got: {type(records).__name__}')
    return iter(records)


def peek_columns(records: Any) -> Tuple[List[str], Iterator[Mapping[str, Any]]]:
    """
    Infer the column list from the first record of a stream.

    Returns:
        Tuple of (columns, records) where records yields the first record again
        followed by the rest of the stream. An empty stream gives ([], empty iterator).
    """
    iterator = iter_records(records)
    first = next(iterator, _MISSING)
    if first is _MISSING:
        return [], iter(())

    if not isinstance(first, Mapping):
        raise EncodingError(f'records must be mappings of column name to value, got: {type(first).__name__}')

    columns = list(first.keys())
    for column in columns:
        # Enum members hash by name, so they would never match the text key used for lookups
        if not isinstance(column, str) or isinstance(column, Enum):
            raise EncodingError(f'column names must be plain strings, got: {column!r}')
    return columns, chain([first], iterator)


def chunked(records: Iterable[Any], batch_size: BatchSize) -> Iterator[List[Any]]:
    """Split records into lists of at most batch_size items, or a single list when UNBOUNDED."""
    iterator = iter(records)
    if batch_size == UNBOUNDED:
        chunk = list(iterator)
        if chunk:
            yield chunk
        return

    while True:
        chunk = list(islice(iterator, batch_size))
        if not chunk:
            return
        yield chunk


def to_text(value: Any) -> str:
    """Render a non-null value as the text PostgreSQL expects for it."""
    if isinstance(value, Enum):
        return to_text(value.value)
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return 'true' if value else 'false'
    if isinstance(value, (int, float, Decimal)):
        return str(value)
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, separators=(',', ':'), default=_json_default)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (bytes, bytearray, memoryview)):
        return '\\x' + bytes(value).hex()
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    return str(value)


def escape_csv(text: str) -> str:
    if text == NULL_TOKEN or any(char in text for char in CSV_SPECIAL_CHARS):
        return QUOTE + text.replace(QUOTE, QUOTE + QUOTE) + QUOTE
    return text


def escape_text(text: str) -> str:
    for char, escaped in TEXT_ESCAPES:
        text = text.replace(char, escaped)
    return text


def encode_field(value: Any, copy_format: CopyFormat = CopyFormat.CSV) -> str:
    """Encode a single field value for COPY."""
    if value is None:
        return NULL_TOKEN
    text = to_text(value)
    if copy_format == CopyFormat.TEXT:
        return escape_text(text)
    return escape_csv(text)


def encode_row(
    record: Mapping[str, Any],
    columns: List[str],
    copy_format: CopyFormat = CopyFormat.CSV,
    on_missing_column: MissingColumnPolicy = MissingColumnPolicy.NULL,
    table_name: Optional[str] = None,
) -> str:
    """Encode one record as a newline-terminated row with fields in column order."""
    fields = []
    for column in columns:
        value = record.get(column, _MISSING)
        if value is _MISSING:
            if on_missing_column == MissingColumnPolicy.RAISE:
                raise EncodingError(
                    f"record is missing column '{column}' (columns: {columns})", table_name=table_name, column=column
                )
            value = None
        fields.append(encode_field(value, copy_format))
    return DELIMITER.join(fields) + ROW_TERMINATOR


def encode_chunks(
    records: Iterable[Mapping[str, Any]],
    columns: List[str],
    batch_size: BatchSize,
    copy_format: CopyFormat = CopyFormat.CSV,
    on_missing_column: MissingColumnPolicy = MissingColumnPolicy.NULL,
    table_name: Optional[str] = None,
    on_chunk: Optional[Callable[[int], None]] = None,
) -> Iterator[str]:
    """
    Encode records chunk by chunk.

    Each chunk is encoded only when the consumer asks for it, so a chunk is
    fully delivered before the next one is pulled from the stream.

    Args:
        records: Records to encode, already positioned at the first record
        columns: Fixed column order
        batch_size: Maximum records per chunk, or UNBOUNDED
        copy_format: CSV or TEXT dialect
        on_missing_column: What to do when a record lacks one of the columns
        table_name: Used in error messages and logs
        on_chunk: Called with the number of rows in each chunk once it is encoded
    """
    for chunk_number, chunk in enumerate(chunked(records, batch_size), start=1):
        encoded = ''.join(encode_row(record, columns, copy_format, on_missing_column, table_name) for record in chunk)
        logger.debug(f"Encoded chunk {chunk_number} for '{table_name}': {len(chunk)} rows, {len(encoded)} chars")
        if on_chunk is not None:
            on_chunk(len(chunk))
        yield encoded


class ChunkStream(io.TextIOBase):
    """
    Read-only text file over a generator of encoded chunks.

    psycopg2's copy_expert() reads its input through read(size). This class
    hands it data from the current chunk and only pulls the next chunk from the
    generator once the current one is exhausted.
    """

    def __init__(self, chunks: Iterable[str]):
        super().__init__()
        self._chunks = iter(chunks)
        self._buffer = ''
        self._position = 0
        self._exhausted = False
        self.error: Optional[Exception] = None

    def readable(self) -> bool:
        return True

    def _fill(self) -> bool:
        while self._position >= len(self._buffer):
            if self._exhausted:
                return False
            try:
                chunk = next(self._chunks, None)
            except Exception as e:
                # copy_expert() reports read() failures generically, keep the cause
                self.error = e
                raise
            if chunk is None:
                self._exhausted = True
                self._buffer, self._position = '', 0
                return False
            self._buffer, self._position = chunk, 0
        return True

    def read(self, size: Optional[int] = -1) -> str:
        if size is None or size < 0:
            parts = []
            while self._fill():
                parts.append(self._buffer[self._position :])
                self._position = len(self._buffer)
            return ''.join(parts)

        parts = []
        remaining = size
        while remaining > 0 and self._fill():
            piece = self._buffer[self._position : self._position + remaining]
            self._position += len(piece)
            remaining -= len(piece)
            parts.append(piece)
        return ''.join(parts)

    def readline(self, size: Optional[int] = -1) -> str:
        parts = []
        while self._fill():
            end = self._buffer.find(ROW_TERMINATOR, self._position)
            if end == -1:
                parts.append(self._buffer[self._position :])
                self._position = len(self._buffer)
                continue
            parts.append(self._buffer[self._position : end + 1])
            self._position = end + 1
            break
        return ''.join(parts)
