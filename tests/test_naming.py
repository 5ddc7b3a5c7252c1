"""Tests for the naming module."""

from transportgen.naming import (
    camel_to_snake,
    default_uri_path,
    first_line,
    humanize_error,
    operation_id,
    package_name,
    sanitize_identifier,
)


class TestCamelToSnake:

    def test_pascal(self):
        assert camel_to_snake("ItemService") == "item_service"

    def test_acronym(self):
        assert camel_to_snake("HTTPServer") == "http_server"

    def test_already_snake(self):
        assert camel_to_snake("item_service") == "item_service"


class TestPackageName:
    """Generated artifacts live in a directory named after the interface."""

    def test_interface(self):
        assert package_name("ItemService") == "item_service_transport"

    def test_valid_python_identifier(self):
        assert package_name("V2Service").isidentifier()
        assert sanitize_identifier("2fa").isidentifier()

    def test_strips_punctuation(self):
        assert sanitize_identifier("my-service.v1") == "my_service_v1"


class TestRoutesAndIds:

    def test_default_uri_path(self):
        assert default_uri_path("ItemService", "get_item") == "/ItemService/get_item"

    def test_operation_id(self):
        assert operation_id("ItemService", "get_item") == "ItemService.get_item"


class TestHumanizeError:

    def test_error_suffix(self):
        assert humanize_error("ItemNotFoundError") == "item not found"

    def test_exception_suffix(self):
        assert humanize_error("QuotaExceededException") == "quota exceeded"

    def test_no_suffix(self):
        assert humanize_error("Conflict") == "conflict"

    def test_bare_suffix_is_kept(self):
        assert humanize_error("Error") == "error"


class TestFirstLine:

    def test_skips_blank_lines(self):
        assert first_line("\n\n  Fetch one.\nMore.") == "Fetch one."

    def test_empty(self):
        assert first_line(None) == ""
        assert first_line("   ") == ""
