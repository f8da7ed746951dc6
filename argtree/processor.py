"""
Argtree processor layer: option/command tables and the dispatch loop.

What this module provides
- OptionTable: key -> handler, plus shortcut -> key (one handler per key, one
  key per shortcut).
- CommandTable: name -> handler (LeafAction or ChildProcessor).
- CommandProcessor: one node of the command tree. process() walks a token
  queue, applies options in order, and dispatches at most one command.

Dispatch, per process() call
1. "--key": the option's handler runs and consumes its own value.
2. "-abc": each character is a shortcut; value-taking shortcuts consume the
   tokens after the cluster, in cluster order ("-pn 80 3" gives p=80, n=3).
3. A bare token naming a command hands the rest of the queue to that command
   and ends the call. Any other bare token ends the option loop untouched.
4. With no command dispatched, the default handler runs, then the shell (if
   the processor has one). After a command, the shell only opens when
   --shell / -$ was given.

Unknown options are reported as warnings and dropped; dispatch goes on.

Quick start
    processor = CommandProcessor(name="tool")
    processor.add_option("verbose", "v", SlotBinding("verbose", attribute("verbose"), type=bool))
    processor.add_command("build", greedy(lambda args, state: print(args)))
    processor.process(["-v", "build", "--target", "release"], state)
"""
import difflib
import os.path
import shlex
import sys
from collections import defaultdict
from collections.abc import Iterable

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .faults import *
from .handlers import LeafAction, ChildProcessor
from .queues import TokenQueue
from .shell import ShellLoop
from .utils import *


class OptionTable:
    __slots__ = ("_handlers", "_shortcuts", "_derived")

    handlers = mirror("handlers")
    shortcuts = mirror("shortcuts")

    def __init__(self):
        self._handlers = {}
        self._shortcuts = {}
        self._derived = set()

    def register(self, key, shortcut, handler, /, *, derived=False):
        """
        Bind handler to --key and, when shortcut is not None, to -shortcut.

        A derived shortcut (taken from the key's first character) yields to
        any shortcut already bound: it is dropped when taken, and an explicit
        shortcut takes it over from the key that derived it.

        Raises
        - TypeError: on a malformed key, shortcut or handler.
        - ConfigurationError: when key is already bound, or an explicit
          shortcut collides with another explicit one.
        """
        if not isinstance(key, str) or not key:
            raise TypeError("option key must be a non-empty string")
        if shortcut is not None and (not isinstance(shortcut, str) or len(shortcut) != 1):
            raise TypeError(f"option shortcut must be a single character, not {shortcut!r}")
        if not callable(handler):
            raise TypeError("option handler must be callable")
        if key in self._handlers:
            trigger(
                ConfigurationError(f"option key {key!r} is already in use"),
                code=FaultCode.DUPLICATED_KEY,
                title="duplicated key",
                hint="give the option another key"
            )
        if shortcut is not None and shortcut in self._shortcuts:
            if derived:
                shortcut = None
            elif shortcut in self._derived:
                self._derived.discard(shortcut)
            else:
                trigger(
                    ConfigurationError(f"option shortcut {shortcut!r} of {key!r} is already used by {self._shortcuts[shortcut]!r}"),
                    code=FaultCode.DUPLICATED_SHORTCUT,
                    title="duplicated shortcut",
                    hint="pass another shortcut (or shortcut=None)"
                )
        self._handlers[key] = handler
        if shortcut is not None:
            self._shortcuts[shortcut] = key
            if derived:
                self._derived.add(shortcut)

    def lookup(self, key, /):
        return self._handlers.get(key)

    def resolve(self, shortcut, /):
        if (key := self._shortcuts.get(shortcut)) is None:
            return None
        return self._handlers[key]

    def shortcut(self, key, /):
        """Return the shortcut bound to key, or None."""
        for shortcut, target in self._shortcuts.items():
            if target == key:
                return shortcut
        return None

    def __contains__(self, key):
        return key in self._handlers

    def __iter__(self):
        return iter(self._handlers)

    def __len__(self):
        return len(self._handlers)


class CommandTable:
    __slots__ = ("_handlers",)

    handlers = mirror("handlers")

    def __init__(self):
        self._handlers = {}

    def register(self, key, handler, /, *, replace=False):
        if not isinstance(key, str) or not key:
            raise TypeError("command key must be a non-empty string")
        if not isinstance(handler, LeafAction | ChildProcessor):
            raise TypeError("command handler must be a LeafAction or a ChildProcessor")
        if key in self._handlers and not replace:
            trigger(
                ConfigurationError(f"command key {key!r} is already in use"),
                code=FaultCode.DUPLICATED_KEY,
                title="duplicated key",
                hint="give the command another key"
            )
        self._handlers[key] = handler

    def lookup(self, key, /):
        return self._handlers.get(key)

    def __contains__(self, key):
        return key in self._handlers

    def __iter__(self):
        return iter(self._handlers)

    def __len__(self):
        return len(self._handlers)


def _enqueue(tokens, /):
    if isinstance(tokens, TokenQueue):
        return tokens
    if tokens is Unset:
        return TokenQueue(sys.argv[1:])
    if isinstance(tokens, str):
        return TokenQueue(shlex.split(tokens))
    if isinstance(tokens, Iterable):
        return TokenQueue(tokens)
    raise TypeError("process() first argument must be a token queue, a string or an iterable of strings")


class CommandProcessor:
    """
    One node of a command tree.

    Parameters
    - prompt: Unset | str
      When given, the processor owns an interactive shell using this prompt
      and accepts the built-in --shell / -$ option.
    - name: Unset | str
      Display name (help usage, fault headers). Defaults to the script name.
    - parent: Unset | CommandProcessor
      Enclosing processor; used to render the full route in help.
    - strict: bool
      Exit with status 0 after printing help.
    - colorful / fancy: bool
      Styling of help and faults (palette, panel chrome).
    - console: Unset | rich.console.Console
      Output for help and the shell prompt.
    - stdin: Unset | TextIO
      Input for the shell; sys.stdin when Unset.

    The "help" command is always registered and cannot be replaced.
    """

    name = mirror("name")
    prompt = mirror("prompt")
    parent = mirror("parent")
    default = mirror("default")
    shell = mirror("shell")
    strict = mirror("strict")
    colorful = mirror("colorful")
    fancy = mirror("fancy")

    def __init__(
            self,
            prompt=Unset,
            /,
            *,
            name=Unset,
            parent=Unset,
            strict=False,
            colorful=False,
            fancy=False,
            console=Unset,
            stdin=Unset
    ):
        if prompt is not Unset and not isinstance(prompt, str):
            raise TypeError("CommandProcessor() prompt must be a string")
        if name is not Unset and (not isinstance(name, str) or not name):
            raise TypeError("CommandProcessor() name must be a non-empty string")
        if parent is not Unset and not isinstance(parent, CommandProcessor):
            raise TypeError("CommandProcessor() parent must be a command processor")

        self._name = coalesce(name, os.path.basename(sys.argv[0]) or "prog")
        self._prompt = coalesce(prompt)
        self._parent = coalesce(parent)
        self._strict = bool(strict)
        self._colorful = bool(colorful)
        self._fancy = bool(fancy)
        self._console = console if console is not Unset else Console()
        self._stdin = stdin
        self._options = OptionTable()
        self._commands = CommandTable()
        self._default = None
        self._shell = None
        self._entering = False

        @rename("help")
        def helper(queue, state):
            self._helper()

        self._commands.register("help", LeafAction(helper))

        if prompt is not Unset:
            self._shell = ShellLoop(self, prompt)

            @rename("shell")
            def enter(queue, state):
                self._entering = True

            self._options.register("shell", "$", enter)

    @property
    def root(self):
        child, parent = self, self._parent
        while parent:
            child, parent = parent, parent.parent
        return child

    @property
    def path(self):
        path = [processor := self]
        while processor.parent:
            path.append(processor := processor.parent)
        return tuple(reversed(path))

    @property
    def options(self):
        return self._options.handlers

    @property
    def shortcuts(self):
        return self._options.shortcuts

    @property
    def commands(self):
        return self._commands.handlers

    @property
    def console(self):
        return self._console

    @property
    def stdin(self):
        return coalesce(self._stdin, sys.stdin)

    def add_option(self, key, shortcut, handler, /, *, derived=False):
        """
        Register an option handler under --key (and -shortcut unless None).

        The handler is called as handler(queue, state) and consumes its own
        value tokens, if any (a SlotBinding fits). A derived shortcut is
        dropped when another option already holds it.
        """
        self._options.register(key, shortcut, handler, derived=derived)

    def add_command(self, key, handler, /):
        """
        Register a command handler.

        Parameters
        - key: str
          The bare token dispatching to the handler.
        - handler: LeafAction | ChildProcessor | Callable[[queue, state], None]
          Plain callables are wrapped in a LeafAction.

        Raises
        - ConfigurationError: key is "help" or already registered.
        """
        if key == "help":
            trigger(
                ConfigurationError("command key 'help' is reserved"),
                code=FaultCode.RESERVED_KEY,
                title="reserved key",
                hint="give the command another key"
            )
        self._register(key, handler)

    def _register(self, key, handler, /, *, replace=False):
        if not isinstance(handler, LeafAction | ChildProcessor):
            handler = LeafAction(handler)
        self._commands.register(key, handler, replace=replace)

    def set_default(self, handler, /):
        """Set the handler run when no command was dispatched (None clears it)."""
        if handler is not None and not isinstance(handler, LeafAction | ChildProcessor):
            handler = LeafAction(handler)
        self._default = handler

    def trigger(self, fault, /, **options):
        trigger(fault, **options, tool=self, colorful=self._colorful, fancy=self._fancy)

    def _unknown(self, token, key, candidates, /):
        hint = "run 'help' to list the available options"
        if matches := difflib.get_close_matches(key, candidates, n=1):
            hint = f"did you mean {matches[0]!r}?"
        self.trigger(
            UnknownOptionWarning(f"unknown option {token!r}"),
            code=FaultCode.UNKNOWN_SWITCH,
            title="unknown option",
            hint=hint,
            token=token
        )

    def scan(self, queue, state=None, /):
        """
        Apply every option token at the front of the queue.

        Stops at the first token not starting with "-" (left in the queue) or
        when the queue runs dry. Unknown options are reported and dropped.
        """
        while (token := queue.peek()) is not None and token.startswith("-"):
            queue.remove()
            if token.startswith("--"):
                if (handler := self._options.lookup(key := token[2:])) is None:
                    self._unknown(token, key, list(self._options))
                    continue
                handler(queue, state)
                continue
            for shortcut in token[1:]:
                if (handler := self._options.resolve(shortcut)) is None:
                    self._unknown("-" + shortcut, shortcut, list(self._options.shortcuts))
                    continue
                handler(queue, state)

    def process(self, tokens=Unset, state=None, /):
        """
        Dispatch a token stream against state.

        Parameters
        - tokens:
          • TokenQueue: consumed in place (shared with the caller).
          • Unset: sys.argv[1:].
          • str: split via shlex.split.
          • Iterable[str]: used as-is.
        - state: the object option bindings write into.

        Raises
        - ParseError: a value could not be read (propagates unchanged).
        """
        queue = _enqueue(tokens)
        try:
            self.scan(queue, state)
        finally:
            entering, self._entering = self._entering, False

        if queue and (handler := self._commands.lookup(queue.peek())) is not None:
            queue.remove()
            handler(queue, state)
            if entering and self._shell is not None:
                self._shell(queue, state)
            return

        if self._default is not None:
            self._default(queue, state)
        if self._shell is not None:
            self._shell(queue, state)

    def _helper(self):
        """
        Render the option and command listing to the console.

        Palette keys
        - usage-label, program-name, section-label, option-name, shortcut, command-name, panel-title
        Customization
        - Define a mapping named __styles__ in __main__ to override any palette entry.
        """
        styles = defaultdict(str, {
            "usage-label": "bold #00E6FF",  # cyan signature label
            "program-name": "bold #FF4D94",  # magenta-pink brand pop
            "section-label": "bold #FFFFFF",  # pure white headers
            "option-name": "bold #00E6FF",
            "shortcut": "bold #22C55E",
            "command-name": "bold #36C5F0",  # sky-blue commands
            "panel-title": "bold #FF4D94",
        } | getattr(__import__("__main__"), "__styles__", {}))

        def styler(style):
            return styles[style] if self._colorful else ""

        def text(fragment, style=""):
            if not self._colorful:
                return Text(str(fragment))
            return Text(str(fragment), style)

        route = " ".join(processor.name for processor in self.path)

        renders = [
            Text.assemble(
                text("usage:", styler("usage-label")),
                " ",
                text(route, styler("program-name")),
                " [options] <command> <args>"
            ),
            Text(""),
            text("options:", styler("section-label")),
        ]
        for key in self._options:
            if (shortcut := self._options.shortcut(key)) is not None:
                renders.append(Text.assemble(
                    "  ", text("-" + shortcut, styler("shortcut")), ", ", text("--" + key, styler("option-name"))
                ))
            else:
                renders.append(Text.assemble("      ", text("--" + key, styler("option-name"))))
        renders.append(Text(""))
        renders.append(text("commands:", styler("section-label")))
        for key in self._commands:
            renders.append(Text.assemble("  ", text(key, styler("command-name"))))

        if self._fancy:
            self._console.print(Panel(Group(*renders), title=text(route, styler("panel-title")), title_align="left"))
        else:
            self._console.print(Group(*renders))

        if self._strict:
            sys.exit(0)

    def __rich_repr__(self):
        yield "name", self._name
        yield "prompt", self._prompt
        yield "options", list(self._options)
        yield "commands", list(self._commands)

    def __repr__(self):
        return f"{type(self).__name__}({", ".join("%s=%r" % pair for pair in self.__rich_repr__())})"


__all__ = (
    "OptionTable",
    "CommandTable",
    "CommandProcessor",
)
