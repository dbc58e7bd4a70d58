"""StockClass teacher console web package.

The FastAPI application is loaded lazily so that the persistence and roster
modules can be used without building the app, while
``uvicorn stockclass.webapp:app`` keeps working.
"""
from __future__ import annotations

from importlib import import_module
from types import ModuleType
from typing import Any, List, Optional

from . import persistence as _persistence

_IMPL_MODULE: Optional[ModuleType] = None

persistence = _persistence
__all__: List[str] = list(getattr(_persistence, "__all__", ()))


def _load_impl() -> ModuleType:
    global _IMPL_MODULE
    if _IMPL_MODULE is not None:
        return _IMPL_MODULE
    module = import_module(".application", __name__)
    _IMPL_MODULE = module
    module_all = getattr(module, "__all__", ())
    __all__.extend(name for name in module_all if name not in __all__)
    return module


def __getattr__(name: str) -> Any:
    if hasattr(_persistence, name):
        return getattr(_persistence, name)
    if name.startswith("__"):
        raise AttributeError(name)
    module = _load_impl()
    try:
        return getattr(module, name)
    except AttributeError:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}") from None


def __dir__() -> List[str]:
    return sorted(set(globals()) | set(__all__) | set(dir(_load_impl())))
