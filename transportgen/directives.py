"""Directive grammar: turn one marked comment line into a Directive.

A directive line looks like ``@gtg uri-path /items/{id}``. The first word
after the marker is the keyword, the rest of the line is the argument.
Keywords may also be written with a namespace prefix
(``http-server-method``, ``swagger-title``); it is stripped here.
"""

from __future__ import annotations

from enum import Enum
from typing import NamedTuple

# Namespaced spellings, longest first so "http-server-" wins over shorter ones.
_NAMESPACES = ("http-server-", "swagger-")

DOCUMENT_KEYWORDS = frozenset({"title", "version", "description", "summary", "servers"})


class Scope(str, Enum):
    REQUEST = "request"
    RESPONSE = "response"
    DOCUMENT = "document"


class Directive(NamedTuple):
    keyword: str
    argument: str
    scope: Scope
    line: str


def scope_of(keyword: str) -> Scope:
    if keyword.startswith("response-"):
        return Scope.RESPONSE
    if keyword in DOCUMENT_KEYWORDS:
        return Scope.DOCUMENT
    return Scope.REQUEST


def normalize_keyword(word: str) -> str:
    word = word.strip().lower()
    for namespace in _NAMESPACES:
        if word.startswith(namespace) and len(word) > len(namespace):
            return word[len(namespace):]
    return word


def marked_text(line: str, marker: str) -> str | None:
    """Return the text after ``marker`` or None when the line is not marked."""
    stripped = line.strip().lstrip("#").strip()
    if not stripped.startswith(marker):
        return None
    rest = stripped[len(marker):]
    # "@gtgx" is a different token, not a directive.
    if rest and not rest[0].isspace():
        return None
    return rest.strip()


def split_directive(line: str, marker: str) -> Directive | None:
    """Split a comment line into a Directive, or None if it is not one."""
    text = marked_text(line, marker)
    if not text:
        return None
    parts = text.split(None, 1)
    keyword = normalize_keyword(parts[0])
    argument = parts[1].strip() if len(parts) > 1 else ""
    return Directive(keyword, argument, scope_of(keyword), line)


def is_marked(line: str, marker: str) -> bool:
    return marked_text(line, marker) is not None
