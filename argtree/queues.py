"""
Front-consumable token queue shared by every level of a dispatch.

A TokenQueue is handed down the processor tree by reference: whatever one
level consumes is gone for the levels below it, and whatever a command leaves
behind is what its own handler sees next. There is no random access.
"""
from collections import deque
from collections.abc import Iterable

from .utils import Unset


class TokenQueue:
    __slots__ = ("_tokens",)

    def __init__(self, tokens=Unset, /):
        if tokens is Unset:
            tokens = ()
        if isinstance(tokens, str) or not isinstance(tokens, Iterable):
            raise TypeError("TokenQueue() argument must be an iterable of strings")
        self._tokens = deque()
        for token in tokens:
            if not isinstance(token, str):
                raise TypeError(f"TokenQueue() tokens must be strings, not {type(token).__name__!r}")
            self._tokens.append(token)

    @classmethod
    def tokenize(cls, line, /):
        """
        Build a queue from one line of shell input.

        Tokens are separated by runs of whitespace; leading and trailing
        whitespace is ignored, so a blank line gives an empty queue.
        """
        if not isinstance(line, str):
            raise TypeError("tokenize() argument must be a string")
        return cls(line.split())

    def peek(self):
        """Return the front token without consuming it, or None when empty."""
        return self._tokens[0] if self._tokens else None

    def remove(self):
        """
        Consume and return the front token.

        Raises
        - IndexError: when the queue is empty.
        """
        try:
            return self._tokens.popleft()
        except IndexError:
            raise IndexError("remove from an empty token queue") from None

    def drain(self):
        """Consume every remaining token and return them as a list."""
        tokens = list(self._tokens)
        self._tokens.clear()
        return tokens

    def clear(self):
        self._tokens.clear()

    def __len__(self):
        return len(self._tokens)

    def __bool__(self):
        return bool(self._tokens)

    def __repr__(self):
        return f"{type(self).__name__}({list(self._tokens)!r})"


__all__ = (
    "TokenQueue",
)
