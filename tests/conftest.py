"""Shared fixtures: sample service packages written into tmp_path.

Every test gets its own top-level package name so generated modules imported
by one test never shadow those of another.
"""

from __future__ import annotations

import importlib
import itertools
import sys
import textwrap
from pathlib import Path
from typing import Callable

import pytest

from transportgen.config import GenerationConfig
from transportgen.pipeline import run

_counter = itertools.count()


# ---------------------------------------------------------------------------
# Sample sources
# ---------------------------------------------------------------------------

ITEMS_SOURCE = '''
"""Item store."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_LIMIT = 10


class ItemNotFoundError(Exception):
    """item not found"""


class InvalidItemError(ValueError):
    pass


@dataclass
class Item:
    id: int
    name: str
    price: float = 0.0


class ItemService:
    """Item store.

    @gtg http-server http-client metrics log mock swagger
    @gtg title Items API
    @gtg version 2.0.0
    @gtg servers http://localhost:8080 = local
    """

    def get_item(self, id: int) -> Item:
        """@gtg method GET
        @gtg uri-path /items/{id}
        @gtg errors ItemNotFoundError=404
        @gtg summary Fetch one item
        """

    def list_items(self, limit: int = DEFAULT_LIMIT, search: str | None = None) -> list[Item]:
        """@gtg method GET
        @gtg uri-path /items
        @gtg query limit search=q
        """

    def create_item(self, name: str, price: float) -> Item:
        """@gtg method POST
        @gtg uri-path /items
        @gtg json-tag price cost
        @gtg response-status 201
        @gtg errors InvalidItemError=422
        """

    def delete_item(self, id: int, *, token: str) -> None:
        """@gtg method DELETE
        @gtg uri-path /items/{id}
        @gtg header X-Token: token
        @gtg response-status 204
        """

    def helper(self) -> None:
        """Not part of the transport."""
'''

ASYNC_SOURCE = '''
"""Async echo service."""

from __future__ import annotations


class EchoService:
    """@gtg http-server http-client mock

    @gtg title Echo
    """

    async def echo(self, text: str) -> str:
        """@gtg method POST
        @gtg uri-path /echo
        @gtg content-type text/plain
        @gtg response-content-type text/plain
        """

    async def stats(self) -> dict:
        """@gtg method GET
        @gtg uri-path /stats
        @gtg response-header X-Count: count
        @gtg response-content-encoding gzip
        """
'''


# ---------------------------------------------------------------------------
# Source trees
# ---------------------------------------------------------------------------

@pytest.fixture
def make_tree(tmp_path, monkeypatch) -> Callable[[dict[str, str]], Path]:
    """Return a factory writing ``{relative path: source}`` into a fresh package.

    Each directory on the way becomes a regular package. The package root is
    importable for the duration of the test.
    """
    root = tmp_path / f"sample{next(_counter)}"
    root.mkdir()
    (root / "__init__.py").write_text("")
    monkeypatch.syspath_prepend(str(tmp_path))

    def make(files: dict[str, str]) -> Path:
        for relative, source in files.items():
            path = root / relative
            parent = path.parent
            while parent != root:
                parent.mkdir(parents=True, exist_ok=True)
                (parent / "__init__.py").touch()
                parent = parent.parent
            path.write_text(textwrap.dedent(source).lstrip())
        return root

    yield make

    for name in list(sys.modules):
        if name == root.name or name.startswith(root.name + "."):
            del sys.modules[name]


@pytest.fixture
def items_source() -> str:
    return ITEMS_SOURCE


@pytest.fixture
def async_source() -> str:
    return ASYNC_SOURCE


@pytest.fixture
def items_tree(make_tree) -> Path:
    return make_tree({"items.py": ITEMS_SOURCE})


@pytest.fixture
def generated_items(items_tree, tmp_path):
    """Run the generator over the items tree; return an importer for its modules."""
    report = run(GenerationConfig(input_dir=items_tree, document_dir=tmp_path / "doc"))
    assert report.ok, report.failures
    importlib.invalidate_caches()

    def load(module: str):
        return importlib.import_module(f"{items_tree.name}.{module}")

    load.root = items_tree
    load.report = report
    return load
