"""Inference engine registry.

Pipelines select the engine that turns a pixel buffer into a raw output
tensor by name (configured per source) without hard-coding classes.
"""

from __future__ import annotations

from typing import Any, Callable, Dict, Iterable

EngineFactory = Callable[..., Any]

_REGISTRY: Dict[str, EngineFactory] = {}


def register_engine(name: str) -> Callable[[EngineFactory], EngineFactory]:
    """Decorator to register an engine factory under ``name``."""

    def decorator(factory: EngineFactory) -> EngineFactory:
        key = name.lower()
        if key in _REGISTRY:
            raise ValueError(f"Inference engine already registered with name '{name}'")
        _REGISTRY[key] = factory
        return factory

    return decorator


def build_engine(name: str, **kwargs: Any) -> Any:
    """Instantiate the engine registered under ``name``.

    Raises
    ------
    KeyError
        If no engine is registered under the given name.
    """
    factory = _REGISTRY.get(name.lower())
    if factory is None:
        available = ", ".join(sorted(_REGISTRY))
        raise KeyError(f"Inference engine '{name}' not registered. Available: {available}")
    return factory(**kwargs)


def available_engines() -> Iterable[str]:
    """Return registered engine names."""
    return _REGISTRY.keys()
