"""
Argtree utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the queue, slot, processor and builder layers.

Overview
- UnsetType / Unset
  • Singleton sentinel for "value not provided", distinct from None.
  • Falsey, printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default; None/0/""/[] are preserved.

- @rename("name")
  • Give generated handlers a readable __name__/__qualname__, so a traceback
    raised inside a dispatch reads as "assign_port" rather than "<lambda>".

- mirror("attr")
  • Read-only property exposing a private backing field (self._attr) as a
    snapshot for tables, so they can be inspected but not edited in place.

Quick examples
    >>> coalesce(Unset, "fallback")
    'fallback'
    >>> coalesce(None, "fallback") is None
    True
"""
from collections.abc import Mapping, Sequence, Set
from typing import final


@final
class UnsetType:
    """Sentinel type for a value that was not provided; Unset is its only instance."""

    __slots__ = ()

    _instance = None

    def __new__(cls):
        if (instance := cls._instance) is None:
            instance = cls._instance = super().__new__(cls)
        return instance

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """Return object, or default when object is Unset."""
    return default if object is Unset else object


def rename(name, /):
    """
    Decorator setting __name__ and __qualname__ of a generated callable.

    Raises
    - TypeError: name is not a string, or the target is not a callable with
      writable name attributes.
    """
    if not isinstance(name, str):
        raise TypeError("@rename() argument must be a string")

    def decorator(function):
        if not callable(function):
            raise TypeError("@rename() must be applied to a callable")
        try:
            function.__name__ = function.__qualname__ = name
        except (AttributeError, TypeError):
            raise TypeError(f"@rename() cannot rename {function!r}") from None
        return function

    return decorator


def _snapshot(object):
    match object:
        case str() | bytes():
            return object
        case Mapping():
            return {key: _snapshot(value) for key, value in object.items()}
        case Set():
            return {_snapshot(value) for value in object}
        case Sequence():
            return [_snapshot(value) for value in object]
        case _:
            return object


def mirror(name, /):
    """
    Read-only property returning a snapshot of self._<name>.

    Mappings, sets and sequences come back as fresh dicts, sets and lists;
    anything else (handlers, processors, scalars) is returned as is.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")
    field = "_" + name

    @rename(name)
    def getter(self):
        return _snapshot(getattr(self, field))

    return property(getter, doc=f"Snapshot of the {name!r} field.")


Unset = UnsetType()


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
