"""
Interactive shell loop re-entering a processor line by line.

Behavior
- Re-entrancy: while a loop runs, entering it again is a no-op, so a command
  typed inside the shell that would normally open the shell just runs.
- The "exit" command is registered on the owning processor the first time the
  loop starts; it stops the loop before the next prompt.
- Each line is split on whitespace and processed against the same state
  object. A fault raised by one line is rendered on stderr and the loop keeps
  reading; end of input stops the loop.
"""
import copy

from rich.text import Text

from . import faults
from .faults import CommandException, DelegatedCommandError, FaultCode
from .handlers import LeafAction
from .queues import TokenQueue
from .utils import rename


class ShellLoop:
    __slots__ = ("_processor", "_prompt", "_running", "_exiting", "_installed")

    def __init__(self, processor, prompt, /):
        if not isinstance(prompt, str):
            raise TypeError("ShellLoop() prompt must be a string")
        self._processor = processor
        self._prompt = prompt
        self._running = False
        self._exiting = False
        self._installed = False

    @property
    def prompt(self):
        return self._prompt

    @property
    def running(self):
        return self._running

    def _install(self):
        @rename("exit")
        def exit(queue, state):
            self._exiting = True

        self._processor._register("exit", LeafAction(exit), replace=True)
        self._installed = True

    def _report(self, exception):
        processor = self._processor
        if not isinstance(exception, CommandException):
            exception = DelegatedCommandError(
                f"{type(exception).__name__}: {exception}",
                code=FaultCode.DELEGATED_ERROR,
                title="delegated error",
                hint="the command raised an unexpected exception",
                exception=exception
            )
        faults.console.print(copy.replace(
            exception,
            tool=processor,
            colorful=processor.colorful,
            fancy=processor.fancy
        ))

    def __call__(self, queue, state, /):
        if self._running:
            return
        if not self._installed:
            self._install()

        processor = self._processor
        self._running = True
        self._exiting = False
        try:
            while not self._exiting:
                processor.console.print(Text(f"{self._prompt}>> "), end="")
                if not (line := processor.stdin.readline()):
                    break
                try:
                    processor.process(TokenQueue.tokenize(line), state)
                except Exception as exception:
                    self._report(exception)
        finally:
            self._running = False

    def __repr__(self):
        return f"{type(self).__name__}({self._prompt!r}, running={self._running})"


__all__ = (
    "ShellLoop",
)
