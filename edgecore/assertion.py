"""Runtime assertions with levels and a replaceable reporting callback."""

from __future__ import annotations

import ast
import enum
import linecache
import sys
from dataclasses import dataclass
from typing import Callable, ClassVar, Optional

from .environment import is_debug


class AssertLevel(enum.IntEnum):
    """Severity of a failed assertion."""

    INFO = 0
    WARNING = 1
    ERROR = 2
    FATAL = 3


_LEVEL_TAGS = {
    AssertLevel.FATAL: "[FATAL] ",
    AssertLevel.ERROR: "[ERROR] ",
    AssertLevel.WARNING: "[WARNING] ",
    AssertLevel.INFO: "[INFO] ",
}


@dataclass(frozen=True)
class AssertInfo:
    """Details of one failed assertion."""

    condition: str
    message: Optional[str]
    file: str
    line: int
    level: AssertLevel


AssertCallback = Callable[[AssertInfo], object]


def format_assert_message(info: AssertInfo) -> str:
    """Render ``info`` as the text reported for a failed assertion."""
    text = f"{_LEVEL_TAGS[info.level]}Assertion Failed: {info.condition}"
    if info.message:
        text += f" ({info.message})"
    return f"{text}\n  at {info.file}:{info.line}"


class AssertionBreak(AssertionError):
    """Raised when a failed assertion demands that execution stop."""

    def __init__(self, info: AssertInfo) -> None:
        super().__init__(format_assert_message(info))
        self.info = info


class AssertHandler:
    """Reports failed assertions and decides whether they stop execution."""

    _instance: ClassVar[Optional["AssertHandler"]] = None

    def __init__(self) -> None:
        self._callback: Optional[AssertCallback] = None

    @classmethod
    def get(cls) -> "AssertHandler":
        """Return the shared handler."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    def set_callback(self, callback: AssertCallback) -> None:
        """Register a callback that sees every failed assertion."""
        self._callback = callback

    def reset_callback(self) -> None:
        """Remove the registered callback."""
        self._callback = None

    def handle_assert(self, info: AssertInfo) -> bool:
        """Report ``info`` and return True when execution should stop."""
        if self._callback is not None:
            self._callback(info)
        return self._default_handler(info)

    @staticmethod
    def _default_handler(info: AssertInfo) -> bool:
        print(format_assert_message(info), file=sys.stderr)
        if info.level is AssertLevel.FATAL:
            return True
        if info.level is AssertLevel.ERROR:
            return is_debug()
        return False


def debug_break(info: AssertInfo) -> None:
    """Stop execution by raising AssertionBreak for ``info``."""
    raise AssertionBreak(info)


def _condition_text(filename: str, lineno: int, function: str, fallback: str) -> str:
    source = linecache.getline(filename, lineno).strip()
    try:
        tree = ast.parse(source)
    except SyntaxError:
        return fallback
    for node in ast.walk(tree):
        if not isinstance(node, ast.Call) or not node.args:
            continue
        func = node.func
        name = func.id if isinstance(func, ast.Name) else getattr(func, "attr", None)
        if name == function:
            return ast.unparse(node.args[0])
    return fallback


def _fire(condition_text: Optional[str], condition: object, level: AssertLevel,
          message: Optional[str], function: str) -> None:
    caller = sys._getframe(2)
    filename = caller.f_code.co_filename
    lineno = caller.f_lineno
    if condition_text is None:
        condition_text = _condition_text(filename, lineno, function, repr(condition))
    info = AssertInfo(condition_text, message, filename, lineno, level)
    if AssertHandler.get().handle_assert(info):
        debug_break(info)


def edge_assert(condition: object, message: Optional[str] = None) -> None:
    """Check ``condition`` in debug builds only, at error level."""
    if is_debug() and not condition:
        _fire(None, condition, AssertLevel.ERROR, message, "edge_assert")


def verify(condition: object, message: Optional[str] = None) -> None:
    """Check ``condition`` in every build, at error level."""
    if not condition:
        _fire(None, condition, AssertLevel.ERROR, message, "verify")


def assert_fatal(condition: object, message: Optional[str] = None) -> None:
    """Check ``condition``; a failure always stops execution."""
    if not condition:
        _fire(None, condition, AssertLevel.FATAL, message, "assert_fatal")


def assert_warn(condition: object, message: Optional[str] = None) -> None:
    """Check ``condition``; a failure is reported but never stops execution."""
    if not condition:
        _fire(None, condition, AssertLevel.WARNING, message, "assert_warn")


def assert_message(message: Optional[str]) -> None:
    """Report ``message`` at info level without stopping execution."""
    _fire("True", True, AssertLevel.INFO, message, "assert_message")