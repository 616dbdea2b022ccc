"""Outcome classification for individual samples."""

from __future__ import annotations

from .models import Failed, ParseOutcome, Parsed
from .parsers.base import Parser


def classify(parser: Parser, text: str) -> ParseOutcome:
    """Parse ``text`` once and tag the result.

    Only the parser's recognized invalid-input errors become ``Failed``;
    every other exception propagates to the caller.
    """
    try:
        tree = parser.parse(text)
    except parser.invalid_input_errors as exc:
        return Failed(diagnostic=format_diagnostic(exc))
    return Parsed(tree=tree)


def format_diagnostic(exc: BaseException) -> str:
    if isinstance(exc, SyntaxError) and exc.lineno is not None:
        column = f":{exc.offset}" if exc.offset else ""
        return f"{exc.msg} (line {exc.lineno}{column})"
    message = " ".join(str(exc).split())
    return message or exc.__class__.__name__


__all__ = ["classify", "format_diagnostic"]
