from __future__ import annotations

import importlib
from typing import Any


def _load_base_settings(module_name: str) -> type[Any] | None:
    try:
        module = importlib.import_module(module_name)
    except ImportError:
        return None
    base_settings = getattr(module, "BaseSettings", None)
    if isinstance(base_settings, type):
        return base_settings
    return None


SETTINGS_BASES: tuple[type[Any], ...] = tuple(
    base for base in (_load_base_settings("pydantic_settings"),) if base is not None
)


def is_pydantic_settings_subclass(candidate: object) -> bool:
    """Return whether a class is a ``pydantic_settings.BaseSettings`` model.

    Settings classes read their fields from the environment, so wireset treats
    them as leaf services: their constructor takes no injected dependencies.
    If pydantic-settings is not installed, this returns ``False`` for every
    candidate.

    Args:
        candidate: Object to test.

    """
    if not isinstance(candidate, type):
        return False
    try:
        return any(issubclass(candidate, base) for base in SETTINGS_BASES)
    except TypeError:
        return False


__all__ = [
    "SETTINGS_BASES",
    "is_pydantic_settings_subclass",
]
