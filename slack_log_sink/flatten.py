"""Exception flattening: render an exception tree as one line of text.

An exception is one of three shapes:

    single     no inner exception
    wrapped    one inner exception (``__cause__``, or ``__context__`` unless
               suppressed)
    aggregate  a ``BaseExceptionGroup``; nested groups are flattened into
               their leaf exceptions

The tree is walked depth-first, pre-order. A wrapped inner exception is
appended after ``" ---> "``; the members of an aggregate are joined with
``" | "`` and the whole group is prefixed with ``" ---> "``.
"""

import traceback
from dataclasses import dataclass, field
from typing import Callable, Optional

SINGLE = "single"
WRAPPED = "wrapped"
AGGREGATE = "aggregate"

INNER_SEPARATOR = " ---> "
AGGREGATE_SEPARATOR = " | "
ELLIPSIS = "..."


@dataclass
class ExceptionNode:
    exception: BaseException
    kind: str = SINGLE
    children: list["ExceptionNode"] = field(default_factory=list)


def _inner_exception(exc: BaseException) -> Optional[BaseException]:
    if exc.__cause__ is not None:
        return exc.__cause__
    if exc.__context__ is not None and not exc.__suppress_context__:
        return exc.__context__
    return None


def _leaf_exceptions(group: BaseExceptionGroup) -> list[BaseException]:
    leaves = []
    stack = list(reversed(group.exceptions))
    while stack:
        exc = stack.pop()
        if isinstance(exc, BaseExceptionGroup):
            stack.extend(reversed(exc.exceptions))
        else:
            leaves.append(exc)
    return leaves


def build_tree(exc: BaseException) -> ExceptionNode:
    """Build the exception tree rooted at *exc*.

    Each exception object appears at most once, so chains that loop back on
    themselves terminate.
    """
    seen = {id(exc)}
    root = ExceptionNode(exc)
    pending = [root]

    while pending:
        node = pending.pop()
        if isinstance(node.exception, BaseExceptionGroup):
            members = _leaf_exceptions(node.exception)
            node.kind = AGGREGATE
        else:
            inner = _inner_exception(node.exception)
            members = [inner] if inner is not None else []
            if members:
                node.kind = WRAPPED

        for member in members:
            if id(member) in seen:
                continue
            seen.add(id(member))
            child = ExceptionNode(member)
            node.children.append(child)
            pending.append(child)

        if not node.children:
            node.kind = SINGLE

    return root


def flatten(exc: BaseException, selector: Callable[[BaseException], str]) -> str:
    """Join ``selector(e)`` for every exception in the tree, in pre-order."""
    parts: list[str] = []
    # Items are either nodes to render or separator strings.
    stack: list = [build_tree(exc)]

    while stack:
        item = stack.pop()
        if isinstance(item, str):
            parts.append(item)
            continue

        parts.append(selector(item.exception) or "")
        if not item.children:
            continue

        tail: list = [INNER_SEPARATOR]
        for i, child in enumerate(item.children):
            if i:
                tail.append(AGGREGATE_SEPARATOR)
            tail.append(child)
        stack.extend(reversed(tail))

    return "".join(parts)


def exception_message(exc: BaseException) -> str:
    if isinstance(exc, BaseExceptionGroup):
        return exc.message
    return str(exc)


def exception_type(exc: BaseException) -> str:
    return type(exc).__name__


def stack_trace(exc: BaseException) -> str:
    """Formatted traceback of *exc*; empty if it was never raised."""
    if exc.__traceback__ is None:
        return ""
    return "".join(traceback.format_tb(exc.__traceback__)).rstrip()


def flattened_message(exc: BaseException) -> str:
    return flatten(exc, exception_message)


def flattened_type(exc: BaseException) -> str:
    return flatten(exc, exception_type)


def flattened_stack_trace(exc: BaseException) -> str:
    return flatten(exc, stack_trace)


def shorten(text: Optional[str], max_length: int = 1000) -> Optional[str]:
    """Truncate *text* to *max_length* characters, ending with an ellipsis."""
    if not text or len(text) <= max_length:
        return text
    return text[: max_length - len(ELLIPSIS)] + ELLIPSIS
