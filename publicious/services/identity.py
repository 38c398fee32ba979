"""Identity of subscribed handlers.

A handler's fingerprint is a 32-bit hash of its source text with whitespace
removed. Distinct callables built from the same source share a fingerprint,
so it only narrows the search; ``same_handler`` makes the final call.
"""

from __future__ import annotations

import functools
import inspect
import re
from types import BuiltinMethodType, CodeType, MethodType, MethodWrapperType
from typing import Any, Callable

_WHITESPACE = re.compile(r"\s")
_BOUND_METHODS = (MethodType, BuiltinMethodType, MethodWrapperType)


def hash_text(text: str) -> int:
    """Rolling ``hash * 31 + char`` hash, kept as a signed 32-bit integer."""
    value = 0
    for char in text:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _unwrap(handler: Callable[..., Any]) -> Any:
    return getattr(handler, "__func__", handler)


def _dotted_name(target: Any) -> str:
    if not hasattr(target, "__qualname__"):
        target = type(target)
    return f"{getattr(target, '__module__', None)}.{target.__qualname__}"


@functools.lru_cache(maxsize=1024)
def _code_fingerprint(code: CodeType) -> int:
    try:
        text = inspect.getsource(code)
    except (OSError, TypeError):
        text = f"{code.co_filename}:{code.co_firstlineno}:{code.co_qualname}"
    return hash_text(_WHITESPACE.sub("", text))


def fingerprint(handler: Callable[..., Any]) -> int:
    target = _unwrap(handler)
    code = getattr(target, "__code__", None)
    if isinstance(code, CodeType):
        return _code_fingerprint(code)
    # builtins, partials and callable instances have no source of their own
    return hash_text(_dotted_name(target))


def same_handler(left: Callable[..., Any], right: Callable[..., Any]) -> bool:
    if left is right:
        return True
    # obj.method builds a new bound method on every access, for builtin
    # types too; method equality compares the receiver by identity
    if isinstance(left, _BOUND_METHODS) and isinstance(right, _BOUND_METHODS):
        return type(left) is type(right) and left == right
    return False


def describe(handler: Callable[..., Any], context: Any = None) -> str:
    """``ContextType::handler_name`` label used in log lines and errors."""
    owner = type(context).__name__ if context is not None else None
    name = getattr(_unwrap(handler), "__name__", None)
    if not name or name == "<lambda>":
        name = "anonymous"
    return f"{owner}::{name}"
