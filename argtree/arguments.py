r"""
Argtree schema markers and the @command decorator.

Overview
- Markers (class-level descriptors on a schema class)
  • Option[_T]: a typed option slot, spelled --key / -c.
  • Command: a nested schema reached through a command word.
  • Shell: like Command, and the nested processor also owns an interactive shell.

- Decorator
  • @command / @command("key"): turns a schema method into a command whose
    parameters are filled from the tokens after the command word.

- Introspection & representation
  • ArgumentType metaclass provides stable __repr__/__rich_repr__ and exposes
    the fields listed in __introspectable__ as read-only properties.

Slot values
- Markers store per-instance values in the instance __dict__. An Option slot
  that was never assigned reads as its default (or the zero value of its
  type); a Command slot creates its inner state on first access and keeps it.

Quick example:
    >>> from argtree import Option, Command, command
    >>> class Server:
    ...     port: int = Option("port", "p", default=8080)
    ...
    ...     @command
    ...     def start(self): ...
    ...
    >>> class App:
    ...     verbose: bool = Option()
    ...     server: Server = Command()
    ...
    ...     @command("greet")
    ...     def greet(self, name: str, count: int = Option("n")): ...
"""
import functools
import inspect
import operator
import re
import typing

from .slots import ValueType, zero
from .utils import *


class ArgumentType(type):
    """
    Metaclass giving markers a readable identity.

    Responsibilities
    - Derive __typename__ from the class name (camel-case split with hyphens).
    - Provide stable __repr__/__rich_repr__ implementations built from the
      names in __introspectable__.
    - Expose each of those names as a read-only property over "_{name}".
    """
    __introspectable__ = ()

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            return f"{type(self).__typename__}({
                ", ".join(map(functools.partial(operator.mod, "%s=%r"), self.__rich_repr__()))
            })"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in type(self).__introspectable__:
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


def _annotation(owner, name, /):
    try:
        return typing.get_type_hints(owner, include_extras=True).get(name, Unset)
    except (NameError, TypeError):
        return Unset


class Option[_T](metaclass=ArgumentType):
    """
    Typed option slot.

    Parameters
    - key: Unset | str
      Long name. Defaults to the attribute name on a schema class; required
      when the marker tags a method parameter.
    - shortcut: Unset | str | None
      One-character alias. Unset takes the first character of the key; None
      disables the shortcut.
    - type: Unset | type | ValueType
      Overrides the annotation (e.g. ValueType.LONG or ValueType.FLOAT).
    - default: Any
      Value before assignment; Unset means the zero value of the type.
    - must_exist: bool
      For path slots: the file has to exist when the option is given.
    """

    __introspectable__ = (
        "key",
        "shortcut",
        "type",
        "default",
        "must_exist",
        "attribute",
    )

    def __init__(self, key=Unset, /, shortcut=Unset, *, type=Unset, default=Unset, must_exist=False):
        if key is not Unset and (not isinstance(key, str) or not key or key.startswith("-")):
            raise TypeError(f"{typeof(self)} key must be a non-empty string without leading dashes")
        if shortcut not in (Unset, None) and (not isinstance(shortcut, str) or len(shortcut) != 1):
            raise TypeError(f"{typeof(self)} shortcut must be a single character or None")
        self._key = key
        self._shortcut = shortcut
        self._type = type
        self._default = default
        self._must_exist = bool(must_exist)
        self._attribute = Unset

    def __set_name__(self, owner, name):
        self._attribute = name

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        try:
            return instance.__dict__[self._attribute]
        except KeyError:
            pass
        if self._default is not Unset:
            return self._default
        try:
            return zero(ValueType.of(coalesce(self._type, _annotation(type(instance), self._attribute))))
        except TypeError:
            return None

    def __set__(self, instance, value):
        instance.__dict__[self._attribute] = value


class Command(metaclass=ArgumentType):
    """
    Nested schema slot.

    Parameters
    - key: Unset | str
      Command word. Defaults to the attribute name.
    - factory: Unset | Callable[[], Any]
      Creates the inner state. Defaults to the annotated class. When it is a
      class, it is also the schema of the nested processor.
    """

    __introspectable__ = (
        "key",
        "factory",
        "attribute",
    )

    def __init__(self, key=Unset, /, *, factory=Unset):
        if key is not Unset and (not isinstance(key, str) or not key):
            raise TypeError(f"{typeof(self)} key must be a non-empty string")
        if factory is not Unset and not callable(factory):
            raise TypeError(f"{typeof(self)} factory must be callable")
        self._key = key
        self._factory = factory
        self._attribute = Unset

    def __set_name__(self, owner, name):
        self._attribute = name

    def schema(self, owner, /):
        """Return the class describing the nested tree, or Unset."""
        if isinstance(self._factory, type):
            return self._factory
        annotation = _annotation(owner, self._attribute)
        if typing.get_origin(annotation) is typing.Annotated:
            annotation = typing.get_args(annotation)[0]
        return annotation if isinstance(annotation, type) else Unset

    def __get__(self, instance, owner=None):
        if instance is None:
            return self
        try:
            return instance.__dict__[self._attribute]
        except KeyError:
            pass
        if (factory := coalesce(self._factory, self.schema(type(instance)))) is Unset:
            raise AttributeError(f"{typeof(self)} slot {self._attribute!r} has no factory")
        return instance.__dict__.setdefault(self._attribute, factory())

    def __set__(self, instance, value):
        instance.__dict__[self._attribute] = value


class Shell(Command):
    """
    Nested schema slot whose processor also owns an interactive shell.

    Parameters
    - key / factory: as for Command.
    - prompt: Unset | str
      Shell prompt; Unset or "" fall back to the key.
    """

    __introspectable__ = (
        "key",
        "factory",
        "prompt",
        "attribute",
    )

    def __init__(self, key=Unset, /, *, factory=Unset, prompt=Unset):
        super().__init__(key, factory=factory)
        if prompt is not Unset and not isinstance(prompt, str):
            raise TypeError(f"{typeof(self)} prompt must be a string")
        self._prompt = prompt


def typeof(marker, /):
    return type(marker).__typename__


def command(source=Unset, /, *, key=Unset):
    """
    Mark a schema method as a command.

    Invocation modes
    - @command: the command word is the method name.
    - @command("word") / @command(key="word"): explicit command word.

    Parameters tagged with Option (as their default, or inside Annotated[...])
    are named options of the command; every other parameter is positional and
    filled in declaration order. The method stays an ordinary method.
    """
    if isinstance(source, str):
        source, key = Unset, source
    if key is not Unset and (not isinstance(key, str) or not key):
        raise TypeError("@command() key must be a non-empty string")

    @rename("command")
    def wrapper(function, /):
        if not inspect.isfunction(function):
            raise TypeError("@command() must be applied to a function")
        function.__command__ = coalesce(key, function.__name__)
        return function

    return wrapper(source) if source is not Unset else wrapper


__all__ = (
    # Markers
    "Option",
    "Command",
    "Shell",

    # Decorators
    "command",
)

del ArgumentType
