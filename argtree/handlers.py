"""
Command handlers: what a matched command name dispatches to.

A handler is called as handler(queue, state) with the queue positioned right
after the command token. Two shapes exist:

- LeafAction: wraps a plain callback(queue, state).
- ChildProcessor: re-enters a nested processor with the inner state read from
  the enclosing one (identity when no accessor is given).

greedy() adapts a callback(args, state) that wants every remaining token as a
list, and UNRECOGNIZED is the default handler reporting a stray token.
"""
from .faults import *
from .utils import *


class LeafAction:
    __slots__ = ("_callback",)

    callback = mirror("callback")

    def __init__(self, callback, /):
        if not callable(callback):
            raise TypeError("LeafAction() argument must be callable")
        self._callback = callback

    def __call__(self, queue, state, /):
        self._callback(queue, state)

    def __repr__(self):
        return f"{type(self).__name__}({getattr(self._callback, "__name__", self._callback)!r})"


def _identity(state, /):
    return state


class ChildProcessor:
    __slots__ = ("_processor", "_accessor")

    processor = mirror("processor")
    accessor = mirror("accessor")

    def __init__(self, processor, accessor=Unset, /):
        if not callable(getattr(processor, "process", None)):
            raise TypeError("ChildProcessor() first argument must be a command processor")
        if accessor is not Unset and not callable(accessor):
            raise TypeError("ChildProcessor() second argument must be callable")
        self._processor = processor
        self._accessor = coalesce(accessor, _identity)

    def __call__(self, queue, state, /):
        self._processor.process(queue, self._accessor(state))

    def __repr__(self):
        return f"{type(self).__name__}({self._processor.name!r})"


def greedy(callback, /):
    """
    Wrap callback(args, state) into a leaf that drains the whole queue.

    Nothing after a greedy command is seen by anyone else: the callback
    receives every remaining token as a list, options included.
    """
    if not callable(callback):
        raise TypeError("greedy() argument must be callable")

    @rename(getattr(callback, "__name__", "greedy"))
    def drain(queue, state):
        callback(queue.drain(), state)

    return LeafAction(drain)


@rename("unrecognized")
def _unrecognized(queue, state):
    if (token := queue.peek()) is None:
        return
    trigger(
        UnrecognizedCommandWarning(f"unrecognized command {token!r}"),
        code=FaultCode.UNKNOWN_COMMAND,
        title="unrecognized command",
        hint="run 'help' to list the available commands",
        token=token
    )


UNRECOGNIZED = LeafAction(_unrecognized)
"""Default handler that reports the first leftover token, if any."""


__all__ = (
    "LeafAction",
    "ChildProcessor",
    "greedy",
    "UNRECOGNIZED",
)
