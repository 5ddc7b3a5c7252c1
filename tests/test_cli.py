"""Tests for the command line entry point."""

import json
import logging

import pytest
from click.testing import CliRunner

from transportgen.cli import main

BROKEN_SOURCE = '''
class BrokenService:
    """@gtg http-server"""

    def get(self) -> None:
        """@gtg method FETCH"""
'''


@pytest.fixture
def runner():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield CliRunner()
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
    root.setLevel(level)


class TestMain:

    def test_generates(self, runner, items_tree, tmp_path):
        result = runner.invoke(main, ["--in", str(items_tree), "--swagger", str(tmp_path / "doc")])
        assert result.exit_code == 0, result.output
        assert "1 services" in result.output
        assert "wrote" in result.output
        assert (tmp_path / "doc" / "swagger.yaml").is_file()
        assert (items_tree / "item_service_transport" / "httpserver" / "server.py").is_file()

    def test_json_document_with_metadata(self, runner, items_tree, tmp_path):
        result = runner.invoke(main, [
            "--in", str(items_tree),
            "--swagger", str(tmp_path),
            "--json",
            "--title", "Shop",
            "--servers", "https://shop.example = prod\\r\\nhttp://localhost:9000 = dev",
        ])
        assert result.exit_code == 0, result.output
        data = json.loads((tmp_path / "swagger.json").read_text())
        assert data["info"]["title"] == "Shop"
        assert [s["url"] for s in data["servers"]] == [
            "https://shop.example",
            "http://localhost:9000",
            "http://localhost:8080",
        ]

    def test_second_run_reports_unchanged(self, runner, items_tree, tmp_path):
        args = ["--in", str(items_tree), "--swagger", str(tmp_path)]
        runner.invoke(main, args)
        result = runner.invoke(main, args)
        assert result.exit_code == 0
        assert "wrote" not in result.output
        assert "0 written" in result.output

    def test_json_and_yaml_are_exclusive(self, runner, items_tree):
        result = runner.invoke(main, ["--in", str(items_tree), "--json", "--yaml"])
        assert result.exit_code == 2
        assert "mutually exclusive" in result.output

    def test_bad_servers(self, runner, items_tree):
        result = runner.invoke(main, ["--in", str(items_tree), "--servers", "no description here"])
        assert result.exit_code == 2
        assert "wrong servers entry" in result.output

    def test_missing_input_directory(self, runner, tmp_path):
        result = runner.invoke(main, ["--in", str(tmp_path / "missing")])
        assert result.exit_code == 1
        assert "does not exist" in result.output

    def test_failures_exit_nonzero(self, runner, make_tree, items_tree, tmp_path):
        make_tree({"broken.py": BROKEN_SOURCE})
        result = runner.invoke(main, ["--in", str(items_tree), "--swagger", str(tmp_path)])
        assert result.exit_code == 1
        assert "failed BrokenService" in result.output
        assert (items_tree / "item_service_transport" / "httpserver" / "server.py").is_file()
