"""Names derived from interface and method identifiers.

Examples:
  ItemService                  -> item_service_transport  (output directory)
  ItemService.get_item         -> /ItemService/get_item  (default URI path)
  ItemNotFoundError            -> "item not found"  (fallback error message)
  ItemService.get_item         -> ItemService.get_item   (operationId)
"""

from __future__ import annotations

import re

_ERROR_SUFFIXES = ("Error", "Exception")


def camel_to_snake(name: str) -> str:
    """Convert camelCase or PascalCase to snake_case."""
    s1 = re.sub(r"([A-Z]+)([A-Z][a-z])", r"\1_\2", name)
    return re.sub(r"([a-z\d])([A-Z])", r"\1_\2", s1).lower()


def sanitize_identifier(name: str) -> str:
    """Make ``name`` usable as a Python identifier."""
    name = camel_to_snake(name)
    name = re.sub(r"[.\-]", "_", name)
    name = re.sub(r"[^a-z0-9_]", "", name)
    name = re.sub(r"_+", "_", name).strip("_")
    if not name or name[0].isdigit():
        name = f"_{name}"
    return name


def package_name(interface_name: str) -> str:
    """Directory that holds the generated artifacts of one interface.

    The suffix keeps it apart from a source module named after the interface.
    """
    return f"{sanitize_identifier(interface_name)}_transport"


def default_uri_path(interface_name: str, method_name: str) -> str:
    return f"/{interface_name}/{method_name}"


def operation_id(interface_name: str, method_name: str) -> str:
    return f"{interface_name}.{method_name}"


def humanize_error(name: str) -> str:
    """Return a user-safe message for an error class without a docstring."""
    for suffix in _ERROR_SUFFIXES:
        if name.endswith(suffix) and len(name) > len(suffix):
            name = name[: -len(suffix)]
            break
    return camel_to_snake(name).replace("_", " ")


def first_line(text: str | None) -> str:
    if not text:
        return ""
    for line in text.strip().splitlines():
        if line.strip():
            return line.strip()
    return ""
