"""Helper functions shared by the PostgreSQL adapters"""

from typing import Any, List, Mapping, Sequence, Tuple

from psycopg2 import sql
from psycopg2.extras import Json

from ...encoder import DELIMITER, NULL_TOKEN, QUOTE
from ...types import CopyFormat


def table_identifier(table_name: str) -> sql.Composable:
    """Quote a table name, keeping an optional schema prefix (schema.table)."""
    return sql.Identifier(*table_name.split('.'))


def column_list(columns: Sequence[str]) -> sql.Composable:
    return sql.SQL(', ').join(sql.Identifier(column) for column in columns)


def build_copy_sql(table_name: str, columns: Sequence[str], copy_format: CopyFormat) -> sql.Composable:
    """
    Build the COPY ... FROM STDIN statement matching the encoder's wire format.

    Args:
        table_name: Target table, optionally schema-qualified
        columns: Column names in encoding order
        copy_format: CSV or TEXT dialect

    Returns:
        Composable SQL statement for cursor.copy_expert()
    """
    if copy_format == CopyFormat.TEXT:
        options = sql.SQL('FORMAT text, DELIMITER {}, NULL {}').format(sql.Literal(DELIMITER), sql.Literal(NULL_TOKEN))
    else:
        options = sql.SQL('FORMAT csv, DELIMITER {}, NULL {}, QUOTE {}').format(
            sql.Literal(DELIMITER), sql.Literal(NULL_TOKEN), sql.Literal(QUOTE)
        )

    return sql.SQL('COPY {} ({}) FROM STDIN WITH ({})').format(
        table_identifier(table_name), column_list(columns), options
    )


def build_insert_sql(table_name: str, columns: Sequence[str]) -> sql.Composable:
    """Build an INSERT statement for psycopg2.extras.execute_values()"""
    return sql.SQL('INSERT INTO {} ({}) VALUES %s').format(table_identifier(table_name), column_list(columns))


def adapt_value(value: Any) -> Any:
    """Wrap structured values so psycopg2 sends them as JSON"""
    if isinstance(value, (dict, list)):
        return Json(value)
    return value


def prepare_insert_rows(records: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> List[Tuple[Any, ...]]:
    """Convert records to value tuples in column order, missing columns as NULL"""
    return [tuple(adapt_value(record.get(column)) for column in columns) for record in records]


def describe_copy_error(error: Exception, table_name: str) -> RuntimeError:
    """Turn a database error raised during COPY into a readable RuntimeError"""
    message = str(error).strip()
    if 'does not exist' in message:
        return RuntimeError(f"Table '{table_name}' or one of its columns does not exist. error: {message}")
    elif 'permission denied' in message.lower():
        return RuntimeError(f"Permission denied writing to table '{table_name}'. Check user permissions.")
    elif 'statement timeout' in message.lower():
        return RuntimeError(f"Timed out while loading table '{table_name}': {message}")
    else:
        return RuntimeError(f'COPY operation failed: {message}')


# statement_timeout is an int4 number of milliseconds
MAX_STATEMENT_TIMEOUT_MS = 2_147_483_647


def set_statement_timeout(connection: Any, seconds: float) -> None:
    """SET LOCAL statement_timeout for the rest of the current transaction (at least 1ms, 0 would disable it)"""
    milliseconds = min(MAX_STATEMENT_TIMEOUT_MS, max(1, int(seconds * 1000)))
    with connection.cursor() as cursor:
        cursor.execute('SET LOCAL statement_timeout = %s', (milliseconds,))
