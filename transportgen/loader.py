"""Discover annotated interfaces in a tree of Python modules.

Modules are read with ``ast``; nothing is imported or executed. Files whose
first line carries the generated marker are skipped, so a second run never
mistakes its own output for input.
"""

from __future__ import annotations

import ast
import builtins
import os
from enum import Enum
from pathlib import Path
from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field

from .config import GENERATED_MARKER
from .directives import is_marked
from .errors import CollaboratorError
from .log import get_logger
from .naming import first_line

logger = get_logger(__name__)

_BUILTIN_NAMES = frozenset(dir(builtins))
_BUILTIN_EXCEPTIONS = frozenset(
    name
    for name, obj in vars(builtins).items()
    if isinstance(obj, type) and issubclass(obj, BaseException)
)
_SKIP_DIRS = frozenset({"__pycache__", "node_modules"})


class ParamKind(str, Enum):
    POSITIONAL_ONLY = "positional_only"
    POSITIONAL_OR_KEYWORD = "positional_or_keyword"
    KEYWORD_ONLY = "keyword_only"
    VAR_POSITIONAL = "var_positional"
    VAR_KEYWORD = "var_keyword"


class ParamDecl(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    annotation: str = ""
    default: str | None = None
    kind: ParamKind = ParamKind.POSITIONAL_OR_KEYWORD


class MethodDecl(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    docstring: str | None = None
    params: tuple[ParamDecl, ...] = ()
    returns: str = ""
    is_async: bool = False
    annotation_names: tuple[str, ...] = ()
    default_names: tuple[str, ...] = ()


class InterfaceDecl(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    docstring: str = ""
    methods: tuple[MethodDecl, ...] = ()
    source_path: Path
    import_path: str
    # module-level exception classes -> user-safe message
    error_types: dict[str, str] = Field(default_factory=dict)
    imported_names: frozenset[str] = frozenset()


def resolve_import_path(path: Path) -> str:
    """Map a module file to its dotted import path.

    Walks up while the parent directory is a package, the way the
    interpreter would see the file from the first non-package directory.
    """
    path = path.resolve()
    parts = [] if path.stem == "__init__" else [path.stem]
    parent = path.parent
    while (parent / "__init__.py").is_file():
        parts.insert(0, parent.name)
        if parent.parent == parent:
            break
        parent = parent.parent
    if not parts or not all(p.isidentifier() for p in parts):
        raise CollaboratorError(f"cannot derive an import path for {path}")
    return ".".join(parts)


def is_generated(path: Path) -> bool:
    try:
        with open(path, "rb") as f:
            return f.readline().startswith(GENERATED_MARKER)
    except OSError as exc:
        raise CollaboratorError(f"cannot read {path}: {exc}") from exc


def iter_source_files(root: Path) -> Iterator[Path]:
    """Yield ``.py`` files under ``root`` in a stable, lexical order."""
    if not root.is_dir():
        raise CollaboratorError(f"input directory {root} does not exist")
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(
            d for d in dirnames if d not in _SKIP_DIRS and not d.startswith(".")
        )
        for filename in sorted(filenames):
            if filename.endswith(".py"):
                yield Path(dirpath) / filename


def _names_in(node: ast.AST | None, *, strings: bool = True) -> set[str]:
    """Collect bare names used in an expression, including string annotations."""
    names: set[str] = set()
    if node is None:
        return names
    for child in ast.walk(node):
        if isinstance(child, ast.Name):
            names.add(child.id)
        elif strings and isinstance(child, ast.Constant) and isinstance(child.value, str):
            try:
                names |= _names_in(ast.parse(child.value, mode="eval"))
            except SyntaxError:
                continue
    return names


def _module_names(tree: ast.Module) -> tuple[set[str], set[str]]:
    """Return (all module-level names, names brought in by imports)."""
    defined: set[str] = set()
    imported: set[str] = set()
    for node in tree.body:
        if isinstance(node, (ast.ClassDef, ast.FunctionDef, ast.AsyncFunctionDef)):
            defined.add(node.name)
        elif isinstance(node, ast.Assign):
            for target in node.targets:
                defined |= {n.id for n in ast.walk(target) if isinstance(n, ast.Name)}
        elif isinstance(node, ast.AnnAssign) and isinstance(node.target, ast.Name):
            defined.add(node.target.id)
        elif isinstance(node, ast.Import):
            for alias in node.names:
                imported.add(alias.asname or alias.name.split(".")[0])
        elif isinstance(node, ast.ImportFrom):
            for alias in node.names:
                if alias.name != "*":
                    imported.add(alias.asname or alias.name)
    return defined | imported, imported


def _base_name(node: ast.expr) -> str:
    if isinstance(node, ast.Attribute):
        return node.attr
    if isinstance(node, ast.Name):
        return node.id
    if isinstance(node, ast.Subscript):
        return _base_name(node.value)
    return ""


def _error_types(tree: ast.Module) -> dict[str, str]:
    """Module-level classes that derive, directly or not, from an exception."""
    classes = {n.name: n for n in tree.body if isinstance(n, ast.ClassDef)}
    known = set(_BUILTIN_EXCEPTIONS)
    found: dict[str, str] = {}
    changed = True
    while changed:
        changed = False
        for name, node in classes.items():
            if name in found:
                continue
            if any(_base_name(base) in known for base in node.bases):
                found[name] = first_line(ast.get_docstring(node))
                known.add(name)
                changed = True
    return {name: found[name] for name in classes if name in found}


def _params(node: ast.FunctionDef | ast.AsyncFunctionDef) -> list[tuple[ParamDecl, ast.expr | None]]:
    args = node.args
    positional = [*args.posonlyargs, *args.args]
    defaults: list[ast.expr | None] = [None] * (len(positional) - len(args.defaults))
    defaults += list(args.defaults)

    result: list[tuple[ParamDecl, ast.expr | None]] = []

    def add(arg: ast.arg, default: ast.expr | None, kind: ParamKind) -> None:
        annotation = ast.unparse(arg.annotation) if arg.annotation is not None else ""
        result.append((
            ParamDecl(
                name=arg.arg,
                annotation=annotation,
                default=ast.unparse(default) if default is not None else None,
                kind=kind,
            ),
            default,
        ))

    for index, (arg, default) in enumerate(zip(positional, defaults)):
        if index == 0 and arg.arg in ("self", "cls"):
            continue
        kind = ParamKind.POSITIONAL_ONLY if arg in args.posonlyargs else ParamKind.POSITIONAL_OR_KEYWORD
        add(arg, default, kind)
    if args.vararg is not None:
        add(args.vararg, None, ParamKind.VAR_POSITIONAL)
    for arg, default in zip(args.kwonlyargs, args.kw_defaults):
        add(arg, default, ParamKind.KEYWORD_ONLY)
    if args.kwarg is not None:
        add(args.kwarg, None, ParamKind.VAR_KEYWORD)
    return result


def _method(node: ast.FunctionDef | ast.AsyncFunctionDef, module_names: set[str]) -> MethodDecl:
    params = _params(node)
    annotation_names: set[str] = _names_in(node.returns)
    default_names: set[str] = set()
    for arg in [*node.args.posonlyargs, *node.args.args, *node.args.kwonlyargs]:
        annotation_names |= _names_in(arg.annotation)
    for _, default in params:
        default_names |= {n for n in _names_in(default, strings=False) if n not in _BUILTIN_NAMES}
    return MethodDecl(
        name=node.name,
        docstring=ast.get_docstring(node),
        params=tuple(p for p, _ in params),
        returns=ast.unparse(node.returns) if node.returns is not None else "",
        is_async=isinstance(node, ast.AsyncFunctionDef),
        annotation_names=tuple(sorted(annotation_names & module_names)),
        default_names=tuple(sorted(default_names & module_names)),
    )


def load_interfaces(path: Path, marker: str) -> list[InterfaceDecl]:
    """Return every marked top-level class declared in one module."""
    try:
        source = path.read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        logger.warning("skipping %s: %s", path, exc)
        return []
    except OSError as exc:
        raise CollaboratorError(f"cannot read {path}: {exc}") from exc
    try:
        tree = ast.parse(source, filename=str(path))
    except SyntaxError as exc:
        logger.warning("skipping %s due to parse error: %s", path, exc)
        return []

    candidates = [
        node for node in tree.body
        if isinstance(node, ast.ClassDef)
        and any(is_marked(line, marker) for line in (ast.get_docstring(node) or "").splitlines())
    ]
    if not candidates:
        return []

    module_names, imported = _module_names(tree)
    error_types = _error_types(tree)
    import_path = resolve_import_path(path)

    interfaces = []
    for node in candidates:
        methods = [
            _method(child, module_names)
            for child in node.body
            if isinstance(child, (ast.FunctionDef, ast.AsyncFunctionDef))
            and not child.name.startswith("_")
        ]
        interfaces.append(InterfaceDecl(
            name=node.name,
            docstring=ast.get_docstring(node) or "",
            methods=tuple(methods),
            source_path=path,
            import_path=import_path,
            error_types=error_types,
            imported_names=frozenset(imported),
        ))
    return interfaces


def discover(root: Path, marker: str) -> list[InterfaceDecl]:
    """Walk ``root`` and collect interface declarations in traversal order."""
    interfaces: list[InterfaceDecl] = []
    for path in iter_source_files(root):
        if is_generated(path):
            logger.debug("skipping generated file %s", path)
            continue
        interfaces.extend(load_interfaces(path, marker))
    return interfaces
