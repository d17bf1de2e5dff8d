"""Evaluator registry for discovering and instantiating signal evaluators.

Usage:
    @register_evaluator("my_evaluator")
    class MyEvaluator:
        ...

    evaluator = create_evaluator("my_evaluator", config=config)
    evaluators = list_evaluators()
"""

from __future__ import annotations

import logging
from typing import Any

logger = logging.getLogger(__name__)

# Global registry: evaluator_name -> evaluator_class
_REGISTRY: dict[str, type] = {}


def register_evaluator(name: str):
    """Decorator to register an evaluator class under a given name.

    Args:
        name: Unique evaluator name (e.g., 'momentum_band').

    Returns:
        Decorator that registers the class and returns it unchanged.

    Raises:
        ValueError: If an evaluator with the same name is already registered.
    """

    def decorator(cls):
        if name in _REGISTRY:
            raise ValueError(
                f"Evaluator '{name}' is already registered by {_REGISTRY[name].__name__}"
            )
        _REGISTRY[name] = cls
        logger.debug("Registered evaluator: %s -> %s", name, cls.__name__)
        return cls

    return decorator


def get_evaluator_class(name: str) -> type:
    """Get the evaluator class by name (without instantiating).

    Raises:
        KeyError: If no evaluator is registered under the given name.
    """
    cls = _REGISTRY.get(name)
    if cls is None:
        available = ", ".join(sorted(_REGISTRY.keys())) or "(none)"
        raise KeyError(f"Unknown evaluator '{name}'. Available: {available}")
    return cls


def create_evaluator(name: str, **kwargs: Any):
    """Create an evaluator instance by name.

    Args:
        name: Registered evaluator name.
        **kwargs: Arguments passed to the evaluator constructor.

    Raises:
        KeyError: If no evaluator is registered under the given name.
    """
    return get_evaluator_class(name)(**kwargs)


def list_evaluators() -> list[str]:
    """Return a sorted list of registered evaluator names."""
    return sorted(_REGISTRY.keys())
