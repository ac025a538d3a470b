"""A callable bundled with its arguments, to be invoked later."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

_log = logging.getLogger(__name__)


class DelayFunc:
    """A function and the positional arguments it will be called with."""

    def __init__(self, func: Callable[..., Any], args: Iterable[Any] = ()) -> None:
        self.func = func
        self.args = tuple(args)

    def __str__(self) -> str:
        name = getattr(self.func, "__name__", type(self.func).__name__)
        shown = " ".join(str(arg) for arg in self.args)
        return f"{{DelayFun:{name}, args:[{shown}]}}"

    def __repr__(self) -> str:
        return f"DelayFunc({self.func!r}, {self.args!r})"

    def call(self) -> Any:
        """Invoke the function; an exception it raises is logged, not propagated."""
        try:
            return self.func(*self.args)
        except Exception as err:
            _log.error("%s Call err: %s", self, err)
            return None