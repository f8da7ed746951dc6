"""
Argtree slot bindings: typed value coercion and state mutation.

Overview
- ValueType: the closed set of value types a slot can hold
  (INT, LONG, BOOL, STRING, DOUBLE, FLOAT, FILEPATH).
- zero(value_type): the type-indexed default for a slot nobody assigned.
- SlotBinding: one declared slot. Calling it consumes zero or one token from
  the queue, coerces it, and writes the result into the state object.
- attribute(name) / index(position): assigners writing a named attribute or a
  list position; fetch(name) reads a named attribute back.

Coercion
- INT / LONG: decimal integer literal, range-checked to 32 / 64 bits.
- DOUBLE / FLOAT: float literal; FLOAT is narrowed to single precision.
- STRING: the token verbatim.
- BOOL: an option consumes nothing and stores True; a positional slot parses
  its token, "true" in any case meaning True and anything else False.
- FILEPATH: pathlib.Path of the token; with must_exist the file has to exist
  or the process ends with status 1.
"""
import ctypes
import types
import typing
from enum import Enum
from pathlib import Path, PurePath

from .faults import *
from .utils import *


class ValueType(Enum):
    INT = "int"
    LONG = "long"
    BOOL = "bool"
    STRING = "string"
    DOUBLE = "double"
    FLOAT = "float"
    FILEPATH = "file"

    @classmethod
    def of(cls, annotation, /):
        """
        Resolve a Python annotation (or a ValueType) to a ValueType.

        Accepted: int, bool, str, float, pathlib paths, `X | None` and
        Annotated[X, ...] wrappers around any of those.

        Raises
        - ConfigurationError: for any other annotation.
        """
        if isinstance(annotation, cls):
            return annotation
        if typing.get_origin(annotation) is typing.Annotated:
            return cls.of(typing.get_args(annotation)[0])
        if typing.get_origin(annotation) in (types.UnionType, typing.Union):
            members = [member for member in typing.get_args(annotation) if member is not type(None)]
            if len(members) == 1:
                return cls.of(members[0])
        try:
            return {bool: cls.BOOL, int: cls.INT, float: cls.DOUBLE, str: cls.STRING}[annotation]
        except (KeyError, TypeError):
            pass
        if isinstance(annotation, type) and issubclass(annotation, PurePath):
            return cls.FILEPATH
        trigger(
            ConfigurationError(f"unsupported slot type {annotation!r}"),
            code=FaultCode.UNSUPPORTED_TYPE,
            title="unsupported type",
            hint="use int, bool, str, float or pathlib.Path (or pass type=ValueType.X)"
        )


class SlotKind(Enum):
    OPTION = "option"
    POSITIONAL = "positional"


def zero(value_type, /):
    """Return the default held by a slot of the given type before any assignment."""
    match value_type:
        case ValueType.INT | ValueType.LONG:
            return 0
        case ValueType.DOUBLE | ValueType.FLOAT:
            return 0.0
        case ValueType.STRING:
            return ""
        case ValueType.BOOL:
            return False
        case ValueType.FILEPATH:
            return None
    raise TypeError(f"zero() argument must be a value type, not {type(value_type).__name__!r}")


_LIMITS = {
    ValueType.INT: 1 << 31,
    ValueType.LONG: 1 << 63,
}


def _parse(value_type, token, key, /):
    def uncastable(reason):
        trigger(
            InvalidValueError(f"invalid {value_type.value} value {token!r} for {key!r}: {reason}"),
            code=FaultCode.UNCASTABLE_VALUE,
            title="uncastable value",
            hint=f"pass a valid {value_type.value} literal",
            token=token,
            key=key
        )

    match value_type:
        case ValueType.INT | ValueType.LONG:
            try:
                value = int(token)
            except ValueError:
                uncastable("not an integer")
            if not -_LIMITS[value_type] <= value < _LIMITS[value_type]:
                uncastable("out of range")
            return value
        case ValueType.DOUBLE | ValueType.FLOAT:
            try:
                value = float(token)
            except ValueError:
                uncastable("not a number")
            if value_type is ValueType.FLOAT:
                value = ctypes.c_float(value).value
            return value
        case ValueType.BOOL:
            return token.lower() == "true"
        case ValueType.FILEPATH:
            return Path(token)
        case _:
            return token


class SlotBinding:
    """
    A declared, typed slot and the way its value reaches the state.

    Parameters
    - key: str
      Long name of the slot (the option is spelled --key).
    - assign: Callable[[state, value], None]
      Writes the coerced value; see attribute() and index().
    - shortcut: Unset | str | None
      One-character alias (spelled -c). Unset takes the first character of
      key for options; None means no shortcut.
    - kind: SlotKind
      OPTION slots are matched by name; POSITIONAL slots by order.
    - type: ValueType | type
      Value type, or a Python type resolved through ValueType.of().
    - default: Any
      Value the slot holds before assignment; Unset means zero(type).
    - must_exist: bool
      FILEPATH only: the named file has to exist when the slot is filled.
    """

    __slots__ = ("_key", "_shortcut", "_kind", "_type", "_default", "_must_exist", "_assign")

    key = mirror("key")
    shortcut = mirror("shortcut")
    kind = mirror("kind")
    type = mirror("type")
    default = mirror("default")
    must_exist = mirror("must_exist")

    def __init__(
            self,
            key,
            assign,
            /,
            *,
            shortcut=Unset,
            kind=SlotKind.OPTION,
            type=ValueType.STRING,
            default=Unset,
            must_exist=False
    ):
        if not isinstance(key, str) or not key:
            raise TypeError("slot key must be a non-empty string")
        if not callable(assign):
            raise TypeError("slot assigner must be callable")
        if not isinstance(kind, SlotKind):
            raise TypeError("slot kind must be a SlotKind")
        if shortcut is Unset:
            shortcut = key[0] if kind is SlotKind.OPTION else None
        if shortcut is not None and (not isinstance(shortcut, str) or len(shortcut) != 1):
            raise TypeError(f"slot shortcut must be a single character, not {shortcut!r}")
        self._key = key
        self._assign = assign
        self._kind = kind
        self._shortcut = shortcut
        self._type = ValueType.of(type)
        self._default = coalesce(default, zero(self._type))
        self._must_exist = bool(must_exist)
        if self._must_exist and self._type is not ValueType.FILEPATH:
            raise TypeError("only file slots can require an existing file")

    def consume(self, queue, /):
        """
        Take this slot's value from the front of the queue.

        Boolean options consume nothing. Every other slot consumes exactly one
        token and coerces it.

        Raises
        - MissingValueError: the queue is empty.
        - InvalidValueError: the token is not a literal of the slot type.
        """
        if self._type is ValueType.BOOL and self._kind is SlotKind.OPTION:
            return True
        try:
            token = queue.remove()
        except IndexError:
            trigger(
                MissingValueError(f"{self._kind.value} {self._key!r} requires a value"),
                code=FaultCode.OPTION_VALUE_REQUIRED,
                title="option value required",
                hint=f"pass a {self._type.value} value after {self._key!r}",
                key=self._key
            )
        value = _parse(self._type, token, self._key)
        if self._must_exist and not value.is_file():
            trigger(
                MissingRequiredFileError(f"file does not exist: {token!r}"),
                code=FaultCode.MISSING_REQUIRED_FILE,
                title="missing required file",
                hint=f"{self._key!r} must name an existing file",
                key=self._key
            )
        return value

    def apply(self, queue, state, /):
        self._assign(state, self.consume(queue))

    __call__ = apply

    def __repr__(self):
        return (
            f"{type(self).__name__}(key={self._key!r}, shortcut={self._shortcut!r}, "
            f"kind={self._kind.value!r}, type={self._type.value!r}, default={self._default!r})"
        )


def attribute(name, /):
    """Return an assigner writing the named attribute of the state."""
    @rename(f"assign_{name}")
    def assign(state, value):
        try:
            setattr(state, name, value)
        except (AttributeError, TypeError) as exception:
            raise SlotAccessError(
                f"cannot write slot {name!r} of {type(state).__name__!r}",
                code=FaultCode.SLOT_ACCESS_FAILED,
                title="slot access failed"
            ) from exception
    return assign


def index(position, /):
    """Return an assigner writing one position of a list-like state."""
    @rename(f"assign_{position}")
    def assign(state, value):
        try:
            state[position] = value
        except (IndexError, TypeError) as exception:
            raise SlotAccessError(
                f"cannot write slot #{position} of {type(state).__name__!r}",
                code=FaultCode.SLOT_ACCESS_FAILED,
                title="slot access failed"
            ) from exception
    return assign


def fetch(name, /):
    """Return an accessor reading the named attribute of the state."""
    @rename(f"fetch_{name}")
    def access(state):
        try:
            return getattr(state, name)
        except AttributeError as exception:
            raise SlotAccessError(
                f"cannot read slot {name!r} of {type(state).__name__!r}",
                code=FaultCode.SLOT_ACCESS_FAILED,
                title="slot access failed"
            ) from exception
    return access


__all__ = (
    "ValueType",
    "SlotKind",
    "SlotBinding",
    "zero",
    "attribute",
    "index",
    "fetch",
)
