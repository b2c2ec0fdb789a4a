"""
Seeder container and declaration API.

A Seeder holds the tables to load, in the order they were declared, and a
separate namespace of context values that builders can read but that are
never loaded. Every declaration returns a new Seeder; the one it was called
on is left untouched, so a builder only ever observes what was declared
before it.

Usage:
    from blink import Seeder

    def user_ids(seeder, key):
        return [1, 2, 3]

    def users(seeder, name):
        return ({'id': i, 'name': f'user_{i}'} for i in seeder.context['ids'])

    seeder = Seeder.new().with_context('ids', user_ids).with_table('users', users)
    result = seeder.run(connection, batch_size=5_000)

Builders can also be registered once and resolved by key:

    registry = BuilderRegistry()

    @registry.table('users')
    def users(seeder, name):
        ...

    seeder = registry.new_seeder().with_table('users')
"""

import inspect
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from .errors import BuilderSignatureError, DeclarationError, DuplicateKeyError, MissingBuilderError

logger = logging.getLogger(__name__)

Key = Union[str, Enum]
Builder = Callable[['Seeder', Key], Any]

TABLES = 'tables'
CONTEXT = 'context'


def normalize_key(key: Key) -> str:
    """Return the canonical text form of a table name or context key.

    Strings are used as-is. Enum members stringify to their value when it is a
    string, otherwise to their name, so ``Tables.USERS`` and ``'users'`` name the
    same table when ``Tables.USERS.value == 'users'``.
    """
    if isinstance(key, Enum):
        return key.value if isinstance(key.value, str) else key.name
    if isinstance(key, str):
        return key
    raise DeclarationError(f'keys must be strings or Enum members, got: {key!r}')


def _check_builder(builder: Any, namespace: str, key: str) -> None:
    if not callable(builder):
        raise BuilderSignatureError(f"builder for '{key}' in '{namespace}' must be callable, got: {builder!r}")

    try:
        signature = inspect.signature(builder)
    except (TypeError, ValueError):
        # Some builtins and C extensions expose no signature
        return

    try:
        signature.bind(None, None)
    except TypeError as e:
        raise BuilderSignatureError(
            f"builder for '{key}' in '{namespace}' must accept (seeder, key) arguments: {e}"
        ) from e


@dataclass(frozen=True)
class Seeder:
    """Ordered, immutable collection of declared tables and context.

    Attributes:
        tables: (name, records) pairs in declaration order. Records are whatever
            the table builder returned: a list, a generator, any iterable of
            mappings, or an Arrow table.
        context: Read-only mapping of auxiliary values. Never loaded.
        registry: Optional BuilderRegistry used when a declaration omits its builder.
    """

    tables: Tuple[Tuple[str, Any], ...] = ()
    context: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    registry: Optional['BuilderRegistry'] = None

    @classmethod
    def new(cls, registry: Optional['BuilderRegistry'] = None) -> 'Seeder':
        """Create an empty Seeder, optionally bound to a builder registry."""
        return cls(registry=registry)

    @property
    def table_names(self) -> List[str]:
        return [name for name, _ in self.tables]

    def table(self, name: Key) -> Any:
        """Return the records declared for a table."""
        key = normalize_key(name)
        for table_name, records in self.tables:
            if table_name == key:
                return records
        raise KeyError(f"table '{key}' has not been declared. Declared tables: {self.table_names}")

    def get_context(self, key: Key, default: Any = None) -> Any:
        return self.context.get(normalize_key(key), default)

    def has_table(self, name: Key) -> bool:
        return normalize_key(name) in self.table_names

    def has_context(self, key: Key) -> bool:
        return normalize_key(key) in self.context

    def with_table(self, name: Key, builder: Optional[Builder] = None) -> 'Seeder':
        """
        Declare a table and return a new Seeder with it appended.

        The builder is called immediately as ``builder(seeder, name)`` with this
        Seeder, i.e. the state before the table is added. Its return value is
        stored as-is; a lazy iterable is only consumed when the seeder runs.

        Args:
            name: Table name, a string or an Enum member
            builder: Callable returning the table's records. When omitted, the
                builder registered for ``name`` in the seeder's registry is used.

        Raises:
            DuplicateKeyError: If the table was already declared
            MissingBuilderError: If no builder was given or registered
            BuilderSignatureError: If the builder cannot accept (seeder, name)
        """
        key = normalize_key(name)
        if key in self.table_names:
            raise DuplicateKeyError(TABLES, key)

        builder = self._resolve_builder(TABLES, key, builder)
        records = builder(self, name)

        logger.debug(f"Declared table '{key}' ({len(self.tables) + 1} tables declared)")
        return replace(self, tables=self.tables + ((key, records),))

    def with_context(self, key: Key, builder: Optional[Builder] = None) -> 'Seeder':
        """
        Declare a context value and return a new Seeder holding it.

        Works like with_table(), but the builder's result goes to the context
        namespace and will never be loaded into the database.
        """
        normalized = normalize_key(key)
        if normalized in self.context:
            raise DuplicateKeyError(CONTEXT, normalized)

        builder = self._resolve_builder(CONTEXT, normalized, builder)
        value = builder(self, key)

        logger.debug(f"Declared context '{normalized}'")
        return replace(self, context=MappingProxyType({**self.context, normalized: value}))

    def run(self, destination: Any, **options: Any):
        """Load all declared tables into destination. See blink.runner.run()."""
        from .runner import run

        return run(self, destination, **options)

    def _resolve_builder(self, namespace: str, key: str, builder: Optional[Builder]) -> Builder:
        if builder is None:
            if self.registry is None:
                raise MissingBuilderError(
                    f"no builder given for '{key}' in '{namespace}' and the seeder has no builder registry"
                )
            builder = self.registry.get_builder(namespace, key)

        _check_builder(builder, namespace, key)
        return builder

    def __getitem__(self, item: str) -> Any:
        if item == TABLES:
            return dict(self.tables)
        if item == 'table_order':
            return self.table_names
        if item == CONTEXT:
            return dict(self.context)
        raise KeyError(f"Seeder has no field '{item}'. Available: ['tables', 'table_order', 'context']")

    def __len__(self) -> int:
        return len(self.tables)

    def __repr__(self) -> str:
        return f'Seeder(tables={self.table_names}, context={list(self.context)})'


class BuilderRegistry:
    """Explicit registry of table and context builders, keyed by canonical name"""

    def __init__(self) -> None:
        self._builders: Dict[str, Dict[str, Builder]] = {TABLES: {}, CONTEXT: {}}

    def register_table(self, name: Key, builder: Builder) -> None:
        self._register(TABLES, name, builder)

    def register_context(self, key: Key, builder: Builder) -> None:
        self._register(CONTEXT, key, builder)

    def table(self, name: Key) -> Callable[[Builder], Builder]:
        """Decorator registering a table builder"""

        def decorator(builder: Builder) -> Builder:
            self.register_table(name, builder)
            return builder

        return decorator

    def context(self, key: Key) -> Callable[[Builder], Builder]:
        """Decorator registering a context builder"""

        def decorator(builder: Builder) -> Builder:
            self.register_context(key, builder)
            return builder

        return decorator

    def table_builder(self, name: Key) -> Builder:
        return self.get_builder(TABLES, normalize_key(name))

    def context_builder(self, key: Key) -> Builder:
        return self.get_builder(CONTEXT, normalize_key(key))

    def get_builder(self, namespace: str, key: str) -> Builder:
        builders = self._builders[namespace]
        if key not in builders:
            kind = 'table' if namespace == TABLES else 'context'
            raise MissingBuilderError(f"no {kind} builder registered for '{key}'. Registered: {list(builders)}")
        return builders[key]

    def new_seeder(self) -> Seeder:
        return Seeder.new(registry=self)

    def _register(self, namespace: str, key: Key, builder: Builder) -> None:
        normalized = normalize_key(key)
        if normalized in self._builders[namespace]:
            raise DuplicateKeyError(namespace, normalized)

        _check_builder(builder, namespace, normalized)
        self._builders[namespace][normalized] = builder
        logger.debug(f"Registered {namespace} builder: {normalized}")


def new(registry: Optional[BuilderRegistry] = None) -> Seeder:
    """Create an empty Seeder"""
    return Seeder.new(registry=registry)


def declare_table(seeder: Seeder, name: Key, builder: Optional[Builder] = None) -> Seeder:
    return seeder.with_table(name, builder)


def declare_context(seeder: Seeder, key: Key, builder: Optional[Builder] = None) -> Seeder:
    return seeder.with_context(key, builder)


def declare_tables(seeder: Seeder, names: Iterable[Key]) -> Seeder:
    """Declare several registry-backed tables in order"""
    for name in names:
        seeder = seeder.with_table(name)
    return seeder
