"""Map Python annotation source text to OpenAPI schema fragments.

Handles:
- Builtin scalars (str, int, float, bool, bytes)
- Containers from builtins and typing (list[...], dict[...], Sequence[...])
- Optional[...], Union[...] and ``X | None``
- String (forward reference) annotations
- Anything else becomes a plain object schema
"""

from __future__ import annotations

import ast
from typing import Any

_SCALARS: dict[str, dict[str, Any]] = {
    "str": {"type": "string"},
    "int": {"type": "integer"},
    "float": {"type": "number"},
    "bool": {"type": "boolean"},
    "bytes": {"type": "string", "format": "binary"},
    "bytearray": {"type": "string", "format": "binary"},
    "datetime": {"type": "string", "format": "date-time"},
    "date": {"type": "string", "format": "date"},
    "UUID": {"type": "string", "format": "uuid"},
    "Decimal": {"type": "number"},
}

_ARRAYS = {"list", "List", "Sequence", "MutableSequence", "tuple", "Tuple", "set", "Set", "frozenset", "FrozenSet", "Iterable"}
_MAPPINGS = {"dict", "Dict", "Mapping", "MutableMapping"}
_ANY = {"Any", "object"}

# Scalar annotations a transport can convert from a path/query/header string.
COERCIBLE = ("str", "int", "float", "bool")


def _name(node: ast.expr) -> str:
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Attribute):
        return node.attr
    return ""


def _union(members: list[ast.expr]) -> dict[str, Any]:
    nullable = any(isinstance(m, ast.Constant) and m.value is None for m in members)
    rest = [m for m in members if not (isinstance(m, ast.Constant) and m.value is None)]
    if not rest:
        return {"nullable": True}
    schemas = [_schema(m) for m in rest]
    schema = schemas[0] if len(schemas) == 1 else {"oneOf": schemas}
    if nullable:
        schema = {**schema, "nullable": True}
    return schema


def _flatten_bitor(node: ast.expr) -> list[ast.expr]:
    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _flatten_bitor(node.left) + _flatten_bitor(node.right)
    return [node]


def _schema(node: ast.expr) -> dict[str, Any]:
    if isinstance(node, ast.Constant):
        if node.value is None:
            return {"nullable": True}
        if isinstance(node.value, str):
            return annotation_schema(node.value)
        return {}

    if isinstance(node, ast.BinOp) and isinstance(node.op, ast.BitOr):
        return _union(_flatten_bitor(node))

    if isinstance(node, ast.Subscript):
        outer = _name(node.value)
        args = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]
        if outer == "Optional":
            return _union([*args, ast.Constant(value=None)])
        if outer == "Union":
            return _union(args)
        if outer in ("Annotated", "Final", "ClassVar"):
            return _schema(args[0])
        if outer in _ARRAYS:
            items = [a for a in args if not isinstance(a, ast.Constant) or a.value is not Ellipsis]
            return {"type": "array", "items": _schema(items[0]) if items else {}}
        if outer in _MAPPINGS:
            value = _schema(args[1]) if len(args) > 1 else {}
            return {"type": "object", "additionalProperties": value or True}
        if outer == "Literal":
            values = [a.value for a in args if isinstance(a, ast.Constant)]
            schema = _schema(ast.Name(id=type(values[0]).__name__)) if values else {}
            return {**schema, "enum": values}
        return {"type": "object"}

    name = _name(node)
    if name in _SCALARS:
        return dict(_SCALARS[name])
    if name in _ARRAYS:
        return {"type": "array", "items": {}}
    if name in _MAPPINGS:
        return {"type": "object"}
    if name in _ANY or not name:
        return {}
    if name == "None":
        return {"nullable": True}
    return {"type": "object"}


def annotation_schema(annotation: str) -> dict[str, Any]:
    """Return the OpenAPI schema for an annotation's source text."""
    if not annotation:
        return {}
    try:
        node = ast.parse(annotation, mode="eval").body
    except SyntaxError:
        return {}
    return _schema(node)


def _members(annotation: str) -> list[ast.expr]:
    """Union members of an annotation, None dropped."""
    try:
        node = ast.parse(annotation, mode="eval").body if annotation else None
    except SyntaxError:
        return []
    if node is None:
        return []
    members = _flatten_bitor(node)
    if isinstance(node, ast.Subscript) and _name(node.value) in ("Optional", "Union"):
        members = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]
    return [m for m in members if not (isinstance(m, ast.Constant) and m.value is None)]


def coercion(annotation: str) -> str:
    """Name of the scalar converter for a string-valued request field."""
    members = _members(annotation)
    if len(members) == 1 and _name(members[0]) in COERCIBLE:
        return _name(members[0])
    return "str"


def repeated(annotation: str) -> str | None:
    """Item converter of a list-valued request field, None for anything else.

    ``list[int]`` and ``Optional[tuple[int, ...]]`` give "int", a bare
    ``list`` gives "str". Mappings are not repeated fields.
    """
    members = _members(annotation)
    if len(members) != 1:
        return None
    node = members[0]
    if isinstance(node, ast.Subscript) and _name(node.value) in _ARRAYS:
        args = list(node.slice.elts) if isinstance(node.slice, ast.Tuple) else [node.slice]
        return coercion(ast.unparse(args[0]))
    if _name(node) in _ARRAYS:
        return "str"
    return None
