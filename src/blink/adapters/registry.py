import importlib
import inspect
import logging
import pkgutil
from typing import Any, Dict, List, Optional, Type

from ..errors import AdapterContractError
from .base import Adapter

DEFAULT_ADAPTER = 'postgresql'


class AdapterRegistry:
    """Registry for adapter implementations with auto-discovery"""

    _adapters: Dict[str, Type[Adapter]] = {}
    _auto_discovered: bool = False
    _logger = logging.getLogger(__name__)

    @classmethod
    def register(cls, name: str, adapter_class: Type[Adapter]) -> None:
        """Register an adapter class"""
        if not isinstance(adapter_class, type) or not issubclass(adapter_class, Adapter):
            raise AdapterContractError(f'Adapter class {adapter_class!r} must inherit from Adapter')

        cls._adapters[name] = adapter_class
        cls._logger.debug(f'Registered adapter: {name}')

    @classmethod
    def get_adapter_class(cls, name: str) -> Type[Adapter]:
        """Get an adapter class by name"""
        cls._ensure_auto_discovery()

        if name not in cls._adapters:
            available = list(cls._adapters.keys())
            raise AdapterContractError(f"Adapter '{name}' not found. Available adapters: {available}")

        return cls._adapters[name]

    @classmethod
    def create_adapter(cls, name: str, config: Optional[Dict[str, Any]] = None) -> Adapter:
        """Create an adapter instance"""
        adapter_class = cls.get_adapter_class(name)
        return adapter_class(config)

    @classmethod
    def get_available_adapters(cls) -> List[str]:
        """Get list of available adapter names"""
        cls._ensure_auto_discovery()
        return list(cls._adapters.keys())

    @classmethod
    def _ensure_auto_discovery(cls) -> None:
        if not cls._auto_discovered:
            cls._auto_discover_adapters()
            cls._auto_discovered = True

    @classmethod
    def _auto_discover_adapters(cls) -> None:
        """Auto-discover and register adapters from the implementations package"""
        current_package = __name__.rsplit('.', 1)[0]
        implementations_package = f'{current_package}.implementations'
        implementations_module = importlib.import_module(implementations_package)

        for _, modname, ispkg in pkgutil.iter_modules(implementations_module.__path__, implementations_package + '.'):
            if ispkg or not modname.endswith('_adapter'):
                continue

            module = importlib.import_module(modname)
            for attr_name in dir(module):
                attr = getattr(module, attr_name)
                if isinstance(attr, type) and issubclass(attr, Adapter) and attr is not Adapter:
                    if inspect.isabstract(attr):
                        continue
                    adapter_name = attr.NAME or attr_name.lower().replace('adapter', '')
                    if not cls._adapters.get(adapter_name):
                        cls.register(adapter_name, attr)
                        cls._logger.debug(f'Auto-discovered adapter: {adapter_name} from {modname}')


def validate_adapter(adapter: Any) -> Any:
    """
    Check that an adapter exposes call(records, table_name, destination, options).

    Raises:
        AdapterContractError: If the operation is missing or has the wrong shape
    """
    call = getattr(adapter, 'call', None)
    if call is None or not callable(call):
        raise AdapterContractError(
            f'adapter {adapter!r} must implement Adapter and define call(records, table_name, destination, options)'
        )

    try:
        inspect.signature(call).bind(None, None, None, None)
    except TypeError as e:
        raise AdapterContractError(
            f'adapter {adapter!r} call() must accept (records, table_name, destination, options): {e}'
        ) from e
    except ValueError:
        # No introspectable signature
        pass

    return adapter


def resolve_adapter(adapter: Any = None) -> Any:
    """
    Resolve the adapter option of a run.

    Accepts None (the default PostgreSQL COPY adapter), a registered adapter
    name, an Adapter subclass, or an object providing call().
    """
    if adapter is None:
        adapter = AdapterRegistry.create_adapter(DEFAULT_ADAPTER)
    elif isinstance(adapter, str):
        adapter = AdapterRegistry.create_adapter(adapter)
    elif isinstance(adapter, type):
        if not issubclass(adapter, Adapter):
            raise AdapterContractError(f'adapter {adapter.__name__} must inherit from Adapter')
        if inspect.isabstract(adapter):
            raise AdapterContractError(f'adapter {adapter.__name__} does not implement the abstract adapter methods')
        adapter = adapter()

    return validate_adapter(adapter)


# Module-level convenience functions
def get_adapter_class(name: str) -> Type[Adapter]:
    return AdapterRegistry.get_adapter_class(name)


def create_adapter(name: str, config: Optional[Dict[str, Any]] = None) -> Adapter:
    return AdapterRegistry.create_adapter(name, config)


def get_available_adapters() -> List[str]:
    return AdapterRegistry.get_available_adapters()
