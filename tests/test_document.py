"""Tests for the API document aggregator."""

import json

import pytest
import yaml

from transportgen.builder import build_service
from transportgen.config import GENERATED_JSON_NOTICE, DocumentFormat, GenerationConfig, MarkerStyle, Server
from transportgen.document import aggregate, document_file, serialize
from transportgen.errors import AggregationConflictError
from transportgen.loader import load_interfaces

M = "@gtg"


@pytest.fixture
def items(items_tree):
    (decl,) = load_interfaces(items_tree / "items.py", M)
    return build_service(decl, M)


@pytest.fixture
def build(make_tree):
    def _build(filename: str, source: str):
        root = make_tree({filename: source})
        (decl,) = load_interfaces(root / filename, M)
        return build_service(decl, M)
    return _build


class TestOperations:

    @pytest.fixture
    def paths(self, items):
        return aggregate([items]).paths

    def test_paths_and_verbs(self, paths):
        assert sorted(paths) == ["/items", "/items/{id}"]
        assert sorted(paths["/items"]) == ["get", "post"]
        assert sorted(paths["/items/{id}"]) == ["delete", "get"]

    def test_operation_metadata(self, paths):
        op = paths["/items/{id}"]["get"]
        assert op["operationId"] == "ItemService.get_item"
        assert op["tags"] == ["ItemService"]
        assert op["summary"] == "Fetch one item"

    def test_parameters(self, paths):
        assert paths["/items/{id}"]["get"]["parameters"] == [
            {"name": "id", "in": "path", "required": True, "schema": {"type": "integer"}},
        ]
        limit, search = paths["/items"]["get"]["parameters"]
        assert limit == {"name": "limit", "in": "query", "required": False, "schema": {"type": "integer"}}
        assert search["name"] == "q"
        token = paths["/items/{id}"]["delete"]["parameters"][1]
        assert (token["name"], token["in"], token["required"]) == ("X-Token", "header", True)

    def test_request_body_uses_json_tags(self, paths):
        body = paths["/items"]["post"]["requestBody"]
        schema = body["content"]["application/json"]["schema"]
        assert schema["properties"] == {"name": {"type": "string"}, "cost": {"type": "number"}}
        assert schema["required"] == ["name", "cost"]
        assert body["required"] is True

    def test_responses(self, paths):
        responses = paths["/items/{id}"]["get"]["responses"]
        assert responses["200"]["description"] == "OK"
        assert responses["200"]["content"]["application/json"]["schema"] == {"type": "object"}
        assert responses["404"]["description"] == "item not found"
        assert responses["404"]["content"]["application/json"]["schema"] == {"$ref": "#/components/schemas/Error"}

    def test_empty_response_has_no_content(self, paths):
        response = paths["/items/{id}"]["delete"]["responses"]["204"]
        assert response == {"description": "No Content"}

    def test_response_headers(self, build, async_source):
        paths = aggregate([build("echo.py", async_source)]).paths
        response = paths["/stats"]["get"]["responses"]["200"]
        assert response["headers"] == {"X-Count": {"schema": {"type": "string"}}}

    def test_raw_request_body(self, build, async_source):
        paths = aggregate([build("echo.py", async_source)]).paths
        body = paths["/echo"]["post"]["requestBody"]
        assert body["content"] == {"text/plain": {"schema": {"type": "string"}}}


class TestMetadata:

    def test_source_metadata(self, items):
        doc = aggregate([items])
        assert (doc.title, doc.version) == ("Items API", "2.0.0")
        assert doc.servers == [Server(url="http://localhost:8080", description="local")]

    def test_config_wins_and_servers_merge(self, items):
        config = GenerationConfig(
            title="Public API",
            servers=[Server(url="https://api.example.com", description="prod"),
                     Server(url="http://localhost:8080", description="from config")],
        )
        doc = aggregate([items], config)
        assert doc.title == "Public API"
        assert doc.version == "2.0.0"
        assert [s.description for s in doc.servers] == ["prod", "from config"]

    def test_defaults(self, build):
        service = build("svc.py", '''
            class Svc:
                """@gtg swagger"""

                def ping(self) -> None:
                    """@gtg method GET"""
        ''')
        doc = aggregate([service])
        assert (doc.title, doc.version) == ("API", "1.0.0")
        assert doc.servers == []

    def test_last_declaration_wins(self, build):
        first = build("a.py", '''
            class A:
                """@gtg swagger
                @gtg title First
                """

                def a(self) -> None:
                    """@gtg method GET"""
        ''')
        second = build("b.py", '''
            class B:
                """@gtg swagger
                @gtg title Second
                """

                def b(self) -> None:
                    """@gtg method GET"""
        ''')
        assert aggregate([first, second]).title == "Second"


class TestConflicts:

    def test_same_verb_and_path(self, build, items):
        other = build("other.py", '''
            class Other:
                """@gtg swagger"""

                def fetch(self, id: int) -> None:
                    """@gtg method GET
                    @gtg uri-path /items/{id}
                    """
        ''')
        with pytest.raises(AggregationConflictError) as info:
            aggregate([items, other])
        assert info.value.first == "ItemService.get_item"
        assert info.value.second == "Other.fetch"
        assert "GET /items/{id}" in str(info.value)

    def test_same_path_other_verb_is_fine(self, build, items):
        other = build("other.py", '''
            class Other:
                """@gtg swagger"""

                def replace(self, id: int) -> None:
                    """@gtg method PUT
                    @gtg uri-path /items/{id}
                    """
        ''')
        paths = aggregate([items, other]).paths
        assert sorted(paths["/items/{id}"]) == ["delete", "get", "put"]


class TestSerialize:

    def test_yaml_round_trips(self, items):
        doc = aggregate([items])
        data = yaml.safe_load(serialize(doc, DocumentFormat.YAML))
        assert data["openapi"] == "3.0.3"
        assert data["info"] == {"title": "Items API", "version": "2.0.0"}
        assert list(data)[:2] == ["openapi", "info"]

    def test_json(self, items):
        text = serialize(aggregate([items]), DocumentFormat.JSON)
        assert text.endswith(b"\n")
        assert json.loads(text)["components"]["schemas"]["Error"]["required"] == ["error", "message"]

    def test_json_carries_the_notice_first(self, items):
        data = json.loads(serialize(aggregate([items]), DocumentFormat.JSON))
        assert list(data)[:2] == ["x-generated", "openapi"]
        assert data["x-generated"] == GENERATED_JSON_NOTICE

    def test_document_file_marker(self, items):
        doc = aggregate([items])
        assert document_file(doc, DocumentFormat.YAML).marker is MarkerStyle.COMMENT
        assert document_file(doc, DocumentFormat.JSON).marker is MarkerStyle.JSON_KEY
        assert document_file(doc, DocumentFormat.JSON).display_path == "swagger.json"
