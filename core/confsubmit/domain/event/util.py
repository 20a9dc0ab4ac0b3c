"""Helpers for event classes."""

from typing import Any, Callable, Dict

from dataclasses import dataclass as base_dataclass

EVENT_TYPES: Dict[str, type] = {}
"""Event classes by name; populated as the event modules are imported."""


def _identity(event: Any) -> Any:
    # Uncommitted events have no ID yet.
    if event.created is None:
        return id(event)
    return event.event_id


def _hash(event: Any) -> int:
    return hash(_identity(event))


def _eq(event: Any, other: Any) -> bool:
    if type(other) is not type(event):
        return NotImplemented
    return bool(_identity(event) == _identity(other))


def dataclass(**kwargs: Any) -> Callable[[type], type]:
    """
    Define an event class.

    Events compare equal when they share an event ID, and are registered by
    name so that :func:`.event_factory` can rebuild them from the event log.
    """
    def inner(cls: type) -> type:
        new_cls = base_dataclass(**kwargs)(cls)
        setattr(new_cls, '__hash__', _hash)
        setattr(new_cls, '__eq__', _eq)
        EVENT_TYPES[new_cls.__name__] = new_cls
        return new_cls
    return inner
