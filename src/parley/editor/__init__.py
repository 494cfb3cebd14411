"""Editor host abstraction and implementations."""

from importlib import import_module
from typing import Any

from . import host

__all__ = ["host"]


def __getattr__(name: str) -> Any:
	if name == "qt_host":
		module = import_module(f"{__name__}.{name}")
		globals()[name] = module
		return module
	raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
