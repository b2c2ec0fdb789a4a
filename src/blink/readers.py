"""
Record readers for seed files.

from_csv() and from_json() turn files into record streams that table
builders can return directly:

    def users(seeder, name):
        return from_csv('seeds/users.csv', transform=lambda row: {**row, 'id': int(row['id'])})

CSV values are always read as strings; use transform to convert them.
"""

import inspect
import json
import logging
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Optional, Union

import pyarrow as pa
from pyarrow import csv as pa_csv

logger = logging.getLogger(__name__)

Record = Dict[str, Any]
Transform = Callable[[Record], Record]
Headers = Union[str, List[Union[str, Enum]]]

INFER = 'infer'


def _identity(record: Record) -> Record:
    return record


def _validate_transform(transform: Optional[Transform]) -> Transform:
    if transform is None:
        return _identity

    error = ValueError('transform option must be a function that takes 1 argument')
    if not callable(transform):
        raise error
    try:
        inspect.signature(transform).bind(None)
    except TypeError as e:
        raise error from e
    except ValueError:
        pass
    return transform


def _validate_headers(headers: Headers) -> Optional[List[str]]:
    if isinstance(headers, str):
        if headers == INFER:
            return None
        raise ValueError(f"headers option must be a list of header names or '{INFER}', got: {headers!r}")

    if not isinstance(headers, (list, tuple)):
        raise ValueError(f"headers option must be a list of header names or '{INFER}', got: {headers!r}")

    names = []
    for header in headers:
        if isinstance(header, Enum):
            names.append(str(header.value) if isinstance(header.value, str) else header.name)
        elif isinstance(header, str):
            names.append(header)
        else:
            raise ValueError(f'headers option must be a list of strings or Enum members, got: {headers!r}')
    return names


def _csv_options(path: Path, column_names: Optional[List[str]]):
    """Read options that keep every column as text"""
    parse_options = pa_csv.ParseOptions(newlines_in_values=True)
    if column_names is None:
        # Only the header row is needed to learn the names
        column_names = pa_csv.open_csv(str(path), parse_options=parse_options).schema.names
        read_options = pa_csv.ReadOptions()
    else:
        read_options = pa_csv.ReadOptions(column_names=column_names)

    convert_options = pa_csv.ConvertOptions(
        column_types={name: pa.string() for name in column_names},
        strings_can_be_null=False,
        quoted_strings_can_be_null=False,
    )
    return read_options, parse_options, convert_options


def _ragged_rows_error(path: Path, error: pa.ArrowInvalid) -> ValueError:
    return ValueError(f'{path}: every CSV row must have exactly one value per header: {error}')


def _stream_csv(path: Path, column_names: Optional[List[str]], transform: Transform) -> Iterator[Record]:
    try:
        read_options, parse_options, convert_options = _csv_options(path, column_names)
        reader = pa_csv.open_csv(
            str(path), read_options=read_options, parse_options=parse_options, convert_options=convert_options
        )
        for batch in reader:
            for row in batch.to_pylist():
                yield transform(row)
    except pa.ArrowInvalid as e:
        raise _ragged_rows_error(path, e) from e


def from_csv(
    path: Union[str, Path], *, headers: Headers = INFER, transform: Optional[Transform] = None, stream: bool = False
) -> Union[List[Record], Iterator[Record]]:
    """
    Read a CSV file into records.

    Args:
        path: CSV file path
        headers: 'infer' to take column names from the first row, or a list of
            names when the file has no header row
        transform: Function applied to every record
        stream: Return a lazy iterator that reads the file block by block
            instead of a list

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If headers or transform are invalid, or a row has more or fewer
            values than there are headers
    """
    transform = _validate_transform(transform)
    column_names = _validate_headers(headers)

    path = Path(path)
    if not path.is_file():
        raise FileNotFoundError(f'No such file: {path}')

    if path.stat().st_size == 0:
        logger.debug(f'{path} is empty')
        return iter(()) if stream else []

    if stream:
        return _stream_csv(path, column_names, transform)

    try:
        read_options, parse_options, convert_options = _csv_options(path, column_names)
        table = pa_csv.read_csv(
            str(path), read_options=read_options, parse_options=parse_options, convert_options=convert_options
        )
    except pa.ArrowInvalid as e:
        raise _ragged_rows_error(path, e) from e
    logger.debug(f'Read {table.num_rows} rows from {path}')
    return [transform(row) for row in table.to_pylist()]


def from_json(path: Union[str, Path], *, transform: Optional[Transform] = None) -> List[Record]:
    """
    Read a JSON file whose root is an array of objects into records.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the root is not an array of objects or transform is invalid
    """
    transform = _validate_transform(transform)

    with open(path, 'r', encoding='utf-8') as f:
        items = json.load(f)

    if not isinstance(items, list):
        raise ValueError(f'JSON file must contain an array at root level, found: {type(items).__name__}')

    records = []
    for item in items:
        if not isinstance(item, dict):
            raise ValueError(f'JSON file must contain an array of objects, found: {item!r}')
        records.append(transform(item))

    logger.debug(f'Read {len(records)} records from {path}')
    return records
