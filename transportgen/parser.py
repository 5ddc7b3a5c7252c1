"""Directive chain: recognise marked docstring lines into a MethodDraft.

Each recognizer owns one keyword family. It receives a Directive and the
draft, returns True when it consumed the directive and False to hand it to
the next recognizer. A directive nobody consumes is dropped, so new keywords
never break older generators.
"""

from __future__ import annotations

import re
from typing import Callable, Iterable

from .config import Server
from .directives import Directive, split_directive
from .errors import DirectiveSyntaxError
from .log import get_logger
from .models import MethodDraft

logger = get_logger(__name__)

Recognizer = Callable[[Directive, MethodDraft], bool]

HTTP_VERBS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")
CONTENT_ENCODINGS = ("gzip", "deflate", "identity")

_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_]*"
_PATH_VARIABLE_RE = re.compile(r"\{(" + _IDENTIFIER + r")\}")
_IDENTIFIER_RE = re.compile(_IDENTIFIER + "$")
_HEADER_NAME_RE = re.compile(r"[A-Za-z0-9!#$%&'*+.^_`|~-]+$")
_LIST_SEPARATORS_RE = re.compile(r"[&,;\s]+")
_ERROR_SEPARATORS_RE = re.compile(r"[,;\s]+")
_SPACED_EQUALS_RE = re.compile(r"\s*=\s*")


def _require(directive: Directive) -> str:
    if not directive.argument:
        raise DirectiveSyntaxError(
            f"directive {directive.keyword!r} needs an argument", line=directive.line
        )
    return directive.argument


def _identifier(value: str, directive: Directive, what: str) -> str:
    if not _IDENTIFIER_RE.match(value):
        raise DirectiveSyntaxError(f"invalid {what} {value!r}", line=directive.line)
    return value


def _status(value: str, directive: Directive) -> int:
    try:
        status = int(value)
    except ValueError:
        raise DirectiveSyntaxError(
            f"status code {value!r} is not a number", line=directive.line
        ) from None
    if not 100 <= status <= 599:
        raise DirectiveSyntaxError(
            f"status code {status} is outside 100-599", line=directive.line
        )
    return status


def _pair(directive: Directive, what: str) -> tuple[str, str]:
    """Split ``a b`` or ``a=b`` into two identifiers-ish words."""
    text = _require(directive)
    if "=" in text:
        left, _, right = text.partition("=")
    else:
        left, _, right = text.partition(" ")
    left, right = left.strip(), right.strip()
    if not left or not right:
        raise DirectiveSyntaxError(f"expected '<field> <{what}>'", line=directive.line)
    return left, right


def _header(directive: Directive) -> tuple[str, str]:
    """Parse ``Name: value``; ``{value}`` braces are optional."""
    name, sep, value = _require(directive).partition(":")
    name, value = name.strip(), value.strip()
    if value.startswith("{") and value.endswith("}"):
        value = value[1:-1].strip()
    if not sep or not name or not value:
        raise DirectiveSyntaxError("expected 'Header-Name: value'", line=directive.line)
    if not _HEADER_NAME_RE.match(name):
        raise DirectiveSyntaxError(f"invalid header name {name!r}", line=directive.line)
    return name, _identifier(value, directive, "header binding")


def _entries(text: str, separators: re.Pattern[str] = _LIST_SEPARATORS_RE) -> list[str]:
    """Split a list argument; ``a = b`` is one entry, not three."""
    return [e for e in separators.split(_SPACED_EQUALS_RE.sub("=", text)) if e]


def path_variables(template: str) -> list[str]:
    """Return the ``{variable}`` names of a URI template in order."""
    return _PATH_VARIABLE_RE.findall(template)


# ---------------------------------------------------------------------------
# Request recognizers
# ---------------------------------------------------------------------------

def recognize_method(directive: Directive, draft: MethodDraft) -> bool:
    """``method GET``: the HTTP verb, upper-cased."""
    if directive.keyword != "method":
        return False
    verb = _require(directive).upper()
    if verb not in HTTP_VERBS:
        raise DirectiveSyntaxError(f"unsupported HTTP method {verb!r}", line=directive.line)
    draft.verb = verb
    return True


def recognize_uri_path(directive: Directive, draft: MethodDraft) -> bool:
    """``uri-path /items/{id}``: the route template and its variables."""
    if directive.keyword != "uri-path":
        return False
    template = _require(directive)
    if not template.startswith("/"):
        raise DirectiveSyntaxError("uri-path must start with '/'", line=directive.line)
    names = path_variables(template)
    leftover = _PATH_VARIABLE_RE.sub("", template)
    if "{" in leftover or "}" in leftover:
        raise DirectiveSyntaxError(
            f"malformed path variable in {template!r}", line=directive.line
        )
    duplicated = sorted({n for n in names if names.count(n) > 1})
    if duplicated:
        raise DirectiveSyntaxError(
            f"path variable {duplicated[0]!r} appears more than once", line=directive.line
        )
    draft.uri_template = template
    draft.path_variables = names
    return True


def recognize_api_path(directive: Directive, draft: MethodDraft) -> bool:
    """``api-path /v1``: literal prefix in front of the route."""
    if directive.keyword != "api-path":
        return False
    prefix = _require(directive)
    if not prefix.startswith("/") or "{" in prefix or "}" in prefix:
        raise DirectiveSyntaxError(
            "api-path must be a literal path starting with '/'", line=directive.line
        )
    draft.api_path = prefix
    return True


def recognize_query(directive: Directive, draft: MethodDraft) -> bool:
    """``query limit search=q``: parameters read from the query string."""
    if directive.keyword != "query":
        return False
    for entry in _entries(_require(directive)):
        name, _, key = entry.partition("=")
        name = _identifier(name.strip(), directive, "query parameter")
        draft.query[name] = key.strip() or name
    return True


def recognize_header(directive: Directive, draft: MethodDraft) -> bool:
    """``header X-Token: token``: a parameter read from a request header."""
    if directive.keyword != "header":
        return False
    name, param = _header(directive)
    draft.headers[name] = param
    return True


def recognize_content_type(directive: Directive, draft: MethodDraft) -> bool:
    """``content-type``: media type of the request body."""
    if directive.keyword != "content-type":
        return False
    draft.request_content_type = _require(directive)
    return True


def recognize_json_tag(directive: Directive, draft: MethodDraft) -> bool:
    """``json-tag price cost``: body key for a parameter."""
    if directive.keyword != "json-tag":
        return False
    field, tag = _pair(directive, "tag")
    draft.json_tags[_identifier(field, directive, "field")] = tag
    return True


def recognize_errors(directive: Directive, draft: MethodDraft) -> bool:
    """``errors NotFound=404``: status codes for raised errors."""
    if directive.keyword != "errors":
        return False
    for entry in _entries(_require(directive), _ERROR_SEPARATORS_RE):
        name, sep, code = entry.partition("=")
        if not sep:
            raise DirectiveSyntaxError(
                f"expected '<Error>=<status>', got {entry!r}", line=directive.line
            )
        name = _identifier(name.strip(), directive, "error identifier")
        draft.errors[name] = _status(code.strip(), directive)
    return True


# ---------------------------------------------------------------------------
# Response recognizers
# ---------------------------------------------------------------------------

def recognize_response_status(directive: Directive, draft: MethodDraft) -> bool:
    """``response-status 201``: success status code."""
    if directive.keyword != "response-status":
        return False
    draft.response_status = _status(_require(directive), directive)
    return True


def recognize_response_header(directive: Directive, draft: MethodDraft) -> bool:
    """``response-header X-Count: count``: result attribute sent as a header."""
    if directive.keyword != "response-header":
        return False
    name, field = _header(directive)
    draft.response_headers[name] = field
    return True


def recognize_response_content_type(directive: Directive, draft: MethodDraft) -> bool:
    """``response-content-type``: media type of the response body."""
    if directive.keyword != "response-content-type":
        return False
    draft.response_content_type = _require(directive)
    return True


def recognize_response_content_encoding(directive: Directive, draft: MethodDraft) -> bool:
    """``response-content-encoding gzip``: compression of the response body."""
    if directive.keyword != "response-content-encoding":
        return False
    encoding = _require(directive).lower()
    if encoding not in CONTENT_ENCODINGS:
        raise DirectiveSyntaxError(
            f"unsupported content encoding {encoding!r}", line=directive.line
        )
    draft.response_content_encoding = "" if encoding == "identity" else encoding
    return True


def recognize_response_json_tag(directive: Directive, draft: MethodDraft) -> bool:
    """``response-json-tag price cost``: response key for a result field."""
    if directive.keyword != "response-json-tag":
        return False
    field, tag = _pair(directive, "tag")
    draft.response_json_tags[_identifier(field, directive, "field")] = tag
    return True


def recognize_response_body(directive: Directive, draft: MethodDraft) -> bool:
    """``response-body items``: send only this attribute of the result."""
    if directive.keyword != "response-body":
        return False
    draft.response_body_field = _identifier(_require(directive), directive, "response body field")
    return True


# ---------------------------------------------------------------------------
# Document recognizers
# ---------------------------------------------------------------------------

def recognize_title(directive: Directive, draft: MethodDraft) -> bool:
    """Document title."""
    if directive.keyword != "title":
        return False
    draft.title = _require(directive)
    return True


def recognize_version(directive: Directive, draft: MethodDraft) -> bool:
    """Document version."""
    if directive.keyword != "version":
        return False
    draft.version = _require(directive)
    return True


def recognize_summary(directive: Directive, draft: MethodDraft) -> bool:
    """Operation summary."""
    if directive.keyword != "summary":
        return False
    draft.summary = _require(directive)
    return True


def recognize_description(directive: Directive, draft: MethodDraft) -> bool:
    """Operation description, or the document description on a class."""
    if directive.keyword != "description":
        return False
    draft.description = _require(directive)
    return True


def recognize_servers(directive: Directive, draft: MethodDraft) -> bool:
    """``servers http://host = name``: one document server entry."""
    if directive.keyword != "servers":
        return False
    # URLs may contain "=" themselves; only the spaced form separates.
    url, sep, description = _require(directive).partition(" = ")
    if not url.strip():
        raise DirectiveSyntaxError("expected 'url = description'", line=directive.line)
    draft.servers.append(Server(url=url.strip(), description=description.strip() if sep else ""))
    return True


REQUEST_CHAIN: tuple[Recognizer, ...] = (
    recognize_method,
    recognize_uri_path,
    recognize_api_path,
    recognize_query,
    recognize_header,
    recognize_content_type,
    recognize_json_tag,
    recognize_errors,
)

RESPONSE_CHAIN: tuple[Recognizer, ...] = (
    recognize_response_status,
    recognize_response_header,
    recognize_response_content_type,
    recognize_response_content_encoding,
    recognize_response_json_tag,
    recognize_response_body,
)

DOCUMENT_CHAIN: tuple[Recognizer, ...] = (
    recognize_title,
    recognize_version,
    recognize_summary,
    recognize_description,
    recognize_servers,
)

METHOD_CHAIN: tuple[Recognizer, ...] = RESPONSE_CHAIN + REQUEST_CHAIN + DOCUMENT_CHAIN


def run_chain(
    chain: tuple[Recognizer, ...], directive: Directive, draft: MethodDraft
) -> bool:
    for recognizer in chain:
        if recognizer(directive, draft):
            return True
    return False


def parse(
    lines: Iterable[str],
    marker: str,
    *,
    chain: tuple[Recognizer, ...] = METHOD_CHAIN,
    draft: MethodDraft | None = None,
    method: str = "",
) -> MethodDraft:
    """Feed every marked line through ``chain`` and return the filled draft."""
    draft = draft if draft is not None else MethodDraft()
    for line in lines:
        directive = split_directive(line, marker)
        if directive is None:
            continue
        try:
            consumed = run_chain(chain, directive, draft)
        except DirectiveSyntaxError as exc:
            exc.method = exc.method or method
            raise
        if not consumed:
            logger.debug("ignoring unknown directive %r in %s", directive.keyword, method or "<doc>")
    return draft
