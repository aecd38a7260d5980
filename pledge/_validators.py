"""Argument validators for the public pledge API."""

from __future__ import annotations

from collections.abc import Iterable

from pledge.errors import UsageError


def _type_name(value: object) -> str:
    return type(value).__name__


def ensure_callable(value: object, *, name: str) -> None:
    if not callable(value):
        raise UsageError(f"{name} must be callable, got {_type_name(value)}")


def callable_or_none(value: object) -> object | None:
    """Return ``value`` when it can be called, otherwise ``None``.

    Reaction handlers that are not callable are ignored rather than rejected.
    """
    return value if callable(value) else None


def ensure_iterable(value: object, *, name: str) -> list[object]:
    if isinstance(value, (str, bytes)) or not isinstance(value, Iterable):
        raise UsageError(f"{name} must be an iterable of pledges or values, got {_type_name(value)}")
    return list(value)


__all__ = [
    "callable_or_none",
    "ensure_callable",
    "ensure_iterable",
]
