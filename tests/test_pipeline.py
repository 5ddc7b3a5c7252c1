"""Tests for a full generation run over a source tree."""

import json
import logging

import pytest
import yaml

from transportgen.config import GENERATED_HEADER, DocumentFormat, GenerationConfig
from transportgen.errors import CollaboratorError
from transportgen.pipeline import run

BROKEN_SOURCE = '''
class BrokenService:
    """@gtg http-server"""

    def get(self, name: str) -> str:
        """@gtg method GET
        @gtg uri-path /things/{id}
        """
'''

UNKNOWN_SOURCE = '''
class PingService:
    """@gtg http-server swagger"""

    def ping(self) -> None:
        """@gtg method GET
        @gtg uri-path /ping
        @gtg rate-limit 10/s
        """
'''

CONFLICT_SOURCE = '''
class OtherService:
    """@gtg swagger"""

    def fetch(self, id: int) -> None:
        """@gtg method GET
        @gtg uri-path /items/{id}
        """
'''


@pytest.fixture
def config(items_tree, tmp_path):
    return GenerationConfig(input_dir=items_tree, document_dir=tmp_path / "doc")


class TestRun:

    def test_example_scenario(self, config, items_tree):
        report = run(config)
        assert report.ok
        assert report.services == ["ItemService"]

        out = items_tree / "item_service_transport"
        for relative in ("httpserver/server.py", "httpclient/client.py", "httperrors/ui.py",
                         "instrumenting.py", "logging_middleware.py", "httpclient/service_mock.py"):
            assert (out / relative).read_bytes().startswith(GENERATED_HEADER), relative
        assert not (out / "__init__.py").exists()

    def test_second_run_changes_nothing(self, config):
        first = run(config)
        second = run(config)
        assert second.written == []
        assert sorted(second.unchanged) == sorted(first.written)
        assert second.document.value == "unchanged"

    def test_generated_files_are_not_rescanned(self, config, items_tree):
        run(config)
        assert run(config).services == ["ItemService"]

    def test_handwritten_file_is_protected(self, config, items_tree, caplog):
        target = items_tree / "item_service_transport" / "httpserver" / "server.py"
        target.parent.mkdir(parents=True)
        target.write_text("# my server\n")

        report = run(config)
        assert report.ok
        assert report.skipped == [target]
        assert target.read_text() == "# my server\n"
        notices = [r for r in caplog.records if r.levelno == logging.WARNING and r.getMessage().startswith("skipping ")]
        assert len(notices) == 1
        assert str(target) in notices[0].getMessage()

    def test_failing_service_does_not_block_siblings(self, config, make_tree, items_tree):
        make_tree({"broken.py": BROKEN_SOURCE})
        report = run(config)
        assert not report.ok
        assert "BrokenService" in report.failures
        assert "id" in report.failures["BrokenService"]
        assert report.services == ["ItemService"]
        assert not (items_tree / "broken_service_transport").exists()

    def test_unknown_directives_are_ignored(self, config, make_tree, items_tree):
        make_tree({"ping.py": UNKNOWN_SOURCE})
        report = run(config)
        assert report.ok
        assert (items_tree / "ping_service_transport" / "httpserver" / "server.py").is_file()

    def test_missing_input_directory(self, tmp_path):
        with pytest.raises(CollaboratorError, match="does not exist"):
            run(GenerationConfig(input_dir=tmp_path / "nope"))

    def test_no_interfaces(self, tmp_path):
        (tmp_path / "plain.py").write_text("X = 1\n")
        report = run(GenerationConfig(input_dir=tmp_path, document_dir=tmp_path))
        assert report.ok
        assert report.services == []
        assert report.document is None
        assert not (tmp_path / "swagger.yaml").exists()


class TestDocument:

    def test_yaml_document(self, config):
        report = run(config)
        assert report.document_path == config.document_dir / "swagger.yaml"
        content = report.document_path.read_bytes()
        assert content.startswith(GENERATED_HEADER)
        assert yaml.safe_load(content)["info"]["title"] == "Items API"

    def test_json_document(self, config):
        config = config.model_copy(update={"document_format": DocumentFormat.JSON})
        report = run(config)
        data = json.loads(report.document_path.read_text())
        assert sorted(data["paths"]) == ["/items", "/items/{id}"]

    def test_handwritten_yaml_is_protected(self, config):
        config.document_dir.mkdir()
        config.document_path.write_text("openapi: 3.0.0\n")
        report = run(config)
        assert report.document.value == "skipped"
        assert config.document_path.read_text() == "openapi: 3.0.0\n"

    def test_handwritten_json_is_protected(self, config):
        config = config.model_copy(update={"document_format": DocumentFormat.JSON})
        config.document_dir.mkdir()
        config.document_path.write_text('{"openapi": "3.0.0"}\n')
        report = run(config)
        assert report.document.value == "skipped"
        assert config.document_path.read_text() == '{"openapi": "3.0.0"}\n'

    def test_generated_json_is_regenerated(self, config):
        config = config.model_copy(update={"document_format": DocumentFormat.JSON})
        assert run(config).document.value == "created"
        assert run(config).document.value == "unchanged"
        assert json.loads(config.document_path.read_text())["x-generated"].startswith("CODE GENERATED")

    def test_config_metadata_wins(self, items_tree, tmp_path):
        config = GenerationConfig(input_dir=items_tree, document_dir=tmp_path, title="Shop", version="3.1")
        run(config)
        info = yaml.safe_load(config.document_path.read_bytes())["info"]
        assert info == {"title": "Shop", "version": "3.1"}

    def test_conflict_fails_only_the_document(self, config, make_tree, items_tree):
        make_tree({"other.py": CONFLICT_SOURCE})
        report = run(config)
        assert set(report.failures) == {"document"}
        assert "GET /items/{id}" in report.failures["document"]
        assert report.document is None
        assert (items_tree / "item_service_transport" / "httpserver" / "server.py").is_file()
