"""CLI package for browsing a BiteBox deployment from the terminal."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer application lives in ``cli.app``; re-exporting it here would shadow
# the module, and tests patch attributes on that module path.

__all__ = []
