"""Lexical helpers for raw SQL files.

The scanner only knows enough PostgreSQL lexis to tell executable text apart
from string literals, quoted identifiers, dollar-quoted bodies and comments.
That is all statement splitting and placeholder rewriting need.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal


SegmentKind = Literal["code", "literal", "comment"]

_DOLLAR_TAG = re.compile(r"\$(?:[A-Za-z_][A-Za-z0-9_]*)?\$")
_PLACEHOLDER = re.compile(r"\$(\d+)")


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    text: str


def scan(sql: str) -> list[Segment]:
    segments: list[Segment] = []
    code_start = 0
    i = 0
    n = len(sql)

    def close_code(end: int) -> None:
        if end > code_start:
            segments.append(Segment("code", sql[code_start:end]))

    while i < n:
        ch = sql[i]
        if ch == "-" and sql.startswith("--", i):
            end = sql.find("\n", i)
            end = n if end == -1 else end
            close_code(i)
            segments.append(Segment("comment", sql[i:end]))
            i = code_start = end
            continue
        if ch == "/" and sql.startswith("/*", i):
            end = _block_comment_end(sql, i)
            close_code(i)
            segments.append(Segment("comment", sql[i:end]))
            i = code_start = end
            continue
        if ch == "'":
            escapes = i > 0 and sql[i - 1] in "eE" and (i < 2 or not _is_word(sql[i - 2]))
            end = _quoted_end(sql, i, "'", backslash_escapes=escapes)
            close_code(i)
            segments.append(Segment("literal", sql[i:end]))
            i = code_start = end
            continue
        if ch == '"':
            end = _quoted_end(sql, i, '"', backslash_escapes=False)
            close_code(i)
            segments.append(Segment("literal", sql[i:end]))
            i = code_start = end
            continue
        if ch == "$" and (i == 0 or not _is_word(sql[i - 1])):
            match = _DOLLAR_TAG.match(sql, i)
            if match:
                tag = match.group(0)
                close_tag = sql.find(tag, match.end())
                end = n if close_tag == -1 else close_tag + len(tag)
                close_code(i)
                segments.append(Segment("literal", sql[i:end]))
                i = code_start = end
                continue
        i += 1
    close_code(n)
    return segments


def _is_word(ch: str) -> bool:
    return ch.isalnum() or ch == "_"


def _quoted_end(sql: str, start: int, quote: str, *, backslash_escapes: bool) -> int:
    i = start + 1
    n = len(sql)
    while i < n:
        ch = sql[i]
        if backslash_escapes and ch == "\\":
            i += 2
            continue
        if ch == quote:
            if i + 1 < n and sql[i + 1] == quote:
                i += 2
                continue
            return i + 1
        i += 1
    return n


def _block_comment_end(sql: str, start: int) -> int:
    depth = 0
    i = start
    n = len(sql)
    while i < n:
        if sql.startswith("/*", i):
            depth += 1
            i += 2
        elif sql.startswith("*/", i):
            depth -= 1
            i += 2
            if depth == 0:
                return i
        else:
            i += 1
    return n


def split_statements(sql: str) -> list[str]:
    """Split a script on top-level semicolons.

    Statements made only of whitespace and comments are dropped; comments
    inside a statement are kept with it.
    """
    statements: list[str] = []
    parts: list[str] = []
    has_content = False

    def flush() -> None:
        nonlocal has_content
        statement = "".join(parts).strip()
        if has_content and statement:
            statements.append(statement)
        parts.clear()
        has_content = False

    for segment in scan(sql):
        if segment.kind != "code":
            parts.append(segment.text)
            if segment.kind == "literal":
                has_content = True
            continue
        pieces = segment.text.split(";")
        for index, piece in enumerate(pieces):
            parts.append(piece)
            if piece.strip():
                has_content = True
            if index < len(pieces) - 1:
                flush()
    flush()
    return statements


def rewrite_positional(sql: str) -> tuple[str, list[int]]:
    """Turn ``$n`` placeholders into SQLAlchemy ``:pn`` binds.

    Returns the rewritten text and the sorted, de-duplicated placeholder
    indices. Colons outside ``::`` casts are escaped so ``text()`` does not
    read them as binds.
    """
    out: list[str] = []
    indices: set[int] = set()
    for segment in scan(sql):
        if segment.kind != "code":
            out.append(segment.text.replace(":", "\\:"))
            continue
        out.append(_rewrite_code(segment.text, indices))
    return "".join(out), sorted(indices)


def _rewrite_code(text: str, indices: set[int]) -> str:
    out: list[str] = []
    i = 0
    n = len(text)
    while i < n:
        ch = text[i]
        if ch == ":":
            if text.startswith("::", i):
                out.append("::")
                i += 2
            else:
                out.append("\\:")
                i += 1
            continue
        if ch == "$":
            match = _PLACEHOLDER.match(text, i)
            if match and (i == 0 or not _is_word(text[i - 1])):
                index = int(match.group(1))
                indices.add(index)
                out.append(f":p{index}")
                i = match.end()
                # ``:p1::uuid`` would be read as a bind named "p"; a space keeps the cast.
                if i < n and text[i] == ":":
                    out.append(" ")
                continue
        out.append(ch)
        i += 1
    return "".join(out)
