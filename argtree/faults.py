"""
Argtree faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for all user-facing issues.
- CommandException / CommandWarning: base types that carry message + options and
  know how to render themselves through rich.
- trigger(): central entry point to surface any fault.
- getdoc(): optional description lookup for a code from the host application.

Policy
- Configuration faults are raised while a tree is being built; nothing is
  dispatched from a tree that failed to build.
- Parse faults raised during dispatch propagate out of process(); the shell
  catches and renders them per line.
- Warnings (unknown options, unrecognized commands, leftover tokens) are
  rendered on stderr and dispatch carries on.
- Fatal faults (a required file that does not exist) are rendered and end the
  process with status 1.

Customization
- __styles__, __prog__, __codes__ and __docs__ in __main__ override the
  palette, the program name, the printed code labels and the fault docs.
"""
import copy
import os.path
import sys
from abc import ABC
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, UnsetType

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes used across the dispatcher (stable identifiers).

    grouping (by high-level domain)
    - configuration (101xx): raised while building a tree from a schema.
    - dispatch (111xx): raised while consuming tokens.
    - warnings (121xx): reported, then skipped.

    normalize() allows host remapping to custom labels while keeping the
    numeric values stable.
    """
    # --- configuration errors (10xxx) ---
    INVALID_SCHEMA              = 10101
    UNSUPPORTED_TYPE            = 10102
    DUPLICATED_KEY              = 10103
    DUPLICATED_SHORTCUT         = 10104
    RESERVED_KEY                = 10105
    MISSING_OPTION_KEY          = 10106

    # --- dispatch errors (11xxx) ---
    OPTION_VALUE_REQUIRED       = 11117
    UNCASTABLE_VALUE            = 11120
    MISSING_REQUIRED_FILE       = 11126
    SLOT_ACCESS_FAILED          = 11127
    DELEGATED_ERROR             = 11131

    # --- warnings (12xxx) ---
    UNKNOWN_COMMAND             = 12101
    UNKNOWN_SWITCH              = 12112
    UNPARSED_TOKENS             = 12141

    def normalize(self):
        """
        return a host-normalized string for this code.

        the host application can provide a __codes__ mapping in __main__
        to override numeric ids with friendlier labels.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _render(fault, palette, /):
    main = __import__("__main__")
    options = fault.options
    colorful = options.get("colorful", False)
    fancy = options.get("fancy", False)

    styles = defaultdict(str, palette | getattr(main, "__styles__", {}))

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    if (prog := getattr(main, "__prog__", Unset)) is Unset:
        tool = options.get("tool")
        prog = tool.root.name if tool is not None else os.path.basename(sys.argv[0])

    code = options.get("code")
    title = options.get("title") or type(fault).__name__

    header = Text.assemble(
        "[ ",
        text(prog, styler("prog-name")),
        " | ",
        text(code.normalize() if code is not None else "-", styler("code")),
        " | ",
        text(title.title(), styler("title")),
        " ]"
    )
    message = text(fault.message, styler("message"))
    parts = [message]
    if hint := options.get("hint"):
        parts.append(Text.assemble(text(" -> ", styler("hint-arrow")), text(hint, styler("hint"))))

    if fancy:
        try:
            width = int((console.width - 4) * options["ratio"])
        except KeyError:
            width = None
        return Panel(Group(*parts), title=header, title_align="left", width=width)

    return Group(header, *parts)


class CommandException(Exception):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #00E5FF",  # neon cyan fault code
            "title": "bold #FF4DA6",  # pinky title
            "message": "#C8C8D0",  # soft light gray message
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
        })

    def __trigger__(self) -> None:
        raise self from None

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ConfigurationError(CommandException, TypeError): ...
class ParseError(CommandException, ValueError): ...
class MissingValueError(ParseError): ...
class InvalidValueError(ParseError): ...
class SlotAccessError(CommandException): ...
class DelegatedCommandError(CommandException): ...


class MissingRequiredFileError(CommandException):
    def __trigger__(self) -> None:
        console.print(self)
        sys.exit(1)


class CommandWarning(ABC, Warning):
    def __init__(self, message=Unset, /, **options):
        assert isinstance(message, str | UnsetType)
        self.message = message
        self.options = MappingProxyType(options)

    def __rich__(self):
        return _render(self, {
            "prog-name": "bold #E6E6F0",  # near-white program name
            "code": "bold #FFB400",  # amber fault code for warnings
            "title": "bold #FFC2E0",  # softer pinky title
            "message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        })

    def __trigger__(self) -> None:
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class UnknownOptionWarning(CommandWarning): ...
class UnrecognizedCommandWarning(CommandWarning): ...
class UnparsedTokensWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via copy.replace() before triggering.
    - errors are raised, warnings are rendered, fatal faults render and exit.

    typical options
    - tool, colorful, fancy, title, code, hint, and any other context the
      reporter may want to show (e.g., token/key).
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    copy.replace(fault, **options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code.

    the host application may expose a __docs__ mapping in __main__ where keys
    are FaultCode instances and values are short documentation strings.
    returns None when there is no entry.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be an fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "ConfigurationError",
    "ParseError",
    "MissingValueError",
    "InvalidValueError",
    "SlotAccessError",
    "DelegatedCommandError",
    "MissingRequiredFileError",
    "CommandWarning",
    "UnknownOptionWarning",
    "UnrecognizedCommandWarning",
    "UnparsedTokensWarning",
    "FaultCode",
    "trigger",
    "getdoc",
)
