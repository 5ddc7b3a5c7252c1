"""Processors: one per artifact kind, each mapping a ServiceSpec to files.

Every processor first builds a plain-dict template model from the
ServiceSpec and then renders it. Server and client models both carry the
``WireContract`` of each method, derived by the same function, so the two
sides cannot drift apart.
"""

from __future__ import annotations

import ast
from typing import Any, NamedTuple

from .config import (
    HTTP_CLIENT,
    HTTP_CLIENT_BUILDER_FILE,
    HTTP_CLIENT_ERRORS_FILE,
    HTTP_CLIENT_FILE,
    HTTP_CLIENT_TRANSPORT_FILE,
    HTTP_ERRORS,
    HTTP_SERVER,
    HTTP_SERVER_BUILDER_FILE,
    HTTP_SERVER_FILE,
    HTTP_SERVER_TRANSPORT_FILE,
    HTTP_UI_ERRORS_FILE,
    HTTPS_CLIENT,
    INSTRUMENTING_FILE,
    LOG,
    LOGGING_FILE,
    METRICS,
    MOCK,
    MOCK_FILE,
    SWAGGER,
)
from .builder import is_json
from .log import get_logger
from .models import GeneratedFile, ImportSet, MethodSpec, ParamSource, ServiceSpec
from .naming import package_name
from .render import Renderer
from .schema import coercion, repeated

logger = get_logger(__name__)

_ZERO_VALUES = {
    "None": "None",
    "str": '""',
    "int": "0",
    "float": "0.0",
    "bool": "False",
    "bytes": 'b""',
    "list": "[]",
    "List": "[]",
    "Sequence": "[]",
    "dict": "{}",
    "Dict": "{}",
    "Mapping": "{}",
    "set": "set()",
    "Set": "set()",
    "frozenset": "frozenset()",
    "tuple": "()",
    "Tuple": "()",
}


class WireContract(NamedTuple):
    """What must be identical on both ends of the wire."""

    route: str
    verb: str
    path: str
    request_content_type: str
    request_body_mode: str
    response_status: int
    response_content_type: str
    response_body_kind: str


def wire_contract(method: MethodSpec) -> WireContract:
    return WireContract(
        route=method.route,
        verb=method.verb,
        path=method.full_path,
        request_content_type=method.request_content_type,
        request_body_mode=method.request_body_mode.value,
        response_status=method.response_status,
        response_content_type=method.response_content_type,
        response_body_kind=method.response_body_kind.value,
    )


def zero_value(annotation: str) -> str:
    """Source text of the value an unconfigured mock method returns."""
    try:
        node = ast.parse(annotation, mode="eval").body if annotation else None
    except SyntaxError:
        return "None"
    if isinstance(node, ast.Subscript):
        node = node.value
    if isinstance(node, ast.Attribute):
        return _ZERO_VALUES.get(node.attr, "None")
    if isinstance(node, ast.Name):
        return _ZERO_VALUES.get(node.id, "None")
    return "None"


def _signature(method: MethodSpec) -> str:
    parts = ["self"]
    star = False
    for param in method.parameters:
        if param.keyword_only and not star:
            parts.append("*")
            star = True
        text = f"{param.name}: {param.type_hint}" if param.type_hint else param.name
        if param.default is not None:
            text += f" = {param.default}" if param.type_hint else f"={param.default}"
        parts.append(text)
    return ", ".join(parts)


def _field(param) -> dict[str, Any]:
    item = repeated(param.type_hint)
    return {
        "name": param.name,
        "key": param.key,
        # list-valued fields travel as repeated keys; coerce applies per item
        "multi": item is not None,
        "coerce": item or coercion(param.type_hint),
        "required": param.required,
        "annotation": param.type_hint,
    }


def method_view(method: MethodSpec) -> dict[str, Any]:
    """Template model for one method, shared by every processor."""
    names = [p.name for p in method.parameters]
    path_params = [_field(p) for p in method.bindings(ParamSource.PATH)]
    if path_params:
        args = ", ".join("{0}=_path({0})".format(p["name"]) for p in path_params)
        url = f"{method.full_path!r}.format({args})"
    else:
        url = repr(method.full_path)
    body_params = [_field(p) for p in method.bindings(ParamSource.BODY)]
    return {
        "name": method.name,
        "verb": method.verb,
        "path": method.full_path,
        "route": method.route,
        "contract": wire_contract(method),
        "signature": _signature(method),
        "call": ", ".join(f"{n}={n}" for n in names),
        "transport_signature": ", ".join(f"{n}: Any" for n in names),
        "kwargs_literal": "{" + ", ".join(f"{n!r}: {n}" for n in names) + "}",
        "returns": method.returns,
        "is_async": method.is_async,
        "def_prefix": "async " if method.is_async else "",
        "await_prefix": "await " if method.is_async else "",
        "url_expr": url,
        "path_params": path_params,
        "query_params": [_field(p) for p in method.bindings(ParamSource.QUERY)],
        "header_params": [_field(p) for p in method.bindings(ParamSource.HEADER)],
        "body_params": body_params,
        "body_mode": method.request_body_mode.value,
        "raw_text": bool(body_params) and body_params[0]["annotation"] == "str",
        "request_content_type": method.request_content_type,
        "status": method.response_status,
        "response_content_type": method.response_content_type,
        "response_json": is_json(method.response_content_type),
        "returns_text": method.returns == "str",
        "encoding": method.response_content_encoding,
        "response_headers": [{"header": h, "field": f} for h, f in method.response_headers.items()],
        "body_kind": method.response_body_kind.value,
        "body_field": method.response_body_field,
        "response_tags": dict(method.response_json_tags),
        "response_tags_reverse": {tag: field for field, tag in method.response_json_tags.items()},
        "errors": [{"name": n, "status": s} for n, s in method.error_status_map.items()],
        "zero": zero_value(method.returns),
        "summary": method.document_meta.summary,
    }


def add_type_imports(service: ServiceSpec, imports: ImportSet) -> None:
    """Names used only in annotations; imported under TYPE_CHECKING."""
    imports.add(service.source_import_path, *service.type_names)


def add_default_imports(service: ServiceSpec, imports: ImportSet) -> None:
    """Names referenced by default values; needed at runtime."""
    imports.add(service.source_import_path, *service.default_names)


def add_error_imports(service: ServiceSpec, imports: ImportSet) -> None:
    imports.add(service.source_import_path, *service.errors)


class Processor:
    """Base class: subclasses build a model and list the files to render."""

    kind = ""

    def model(self, service: ServiceSpec) -> dict[str, Any]:
        return {
            "service": service,
            "iface": service.interface_name,
            "package": package_name(service.interface_name),
            "methods": [method_view(m) for m in service.methods],
        }

    def files(self, service: ServiceSpec) -> list[tuple[tuple[str, ...], str, dict[str, Any]]]:
        raise NotImplementedError

    def process(self, service: ServiceSpec, render: Renderer) -> list[GeneratedFile]:
        generated = []
        for path, template, model in self.files(service):
            generated.append(GeneratedFile(relative_path=path, content=render(template, model)))
            logger.debug("%s: rendered %s", service.interface_name, "/".join(path))
        return generated


class HTTPServerProcessor(Processor):
    kind = HTTP_SERVER

    def files(self, service):
        model = self.model(service)
        server_types = ImportSet()
        add_type_imports(service, server_types)
        builder_types = ImportSet()
        builder_types.add(service.source_import_path, service.interface_name)
        return [
            (HTTP_SERVER_FILE, "server.py.j2", {**model, "type_imports": server_types.lines()}),
            (HTTP_SERVER_TRANSPORT_FILE, "server_transport.py.j2", model),
            (HTTP_SERVER_BUILDER_FILE, "server_builder.py.j2", {**model, "type_imports": builder_types.lines()}),
        ]


class HTTPClientProcessor(Processor):
    """Plain and secure clients; only the builder's transport setup differs."""

    def __init__(self, secure: bool = False) -> None:
        self.secure = secure
        self.kind = HTTPS_CLIENT if secure else HTTP_CLIENT

    def model(self, service):
        model = super().model(service)
        model["secure"] = self.secure
        model["client_class"] = f"{service.interface_name}Client"
        model["http_client_type"] = "AsyncClient" if service.is_async else "Client"
        return model

    def files(self, service):
        model = self.model(service)
        imports = ImportSet()
        add_default_imports(service, imports)
        type_imports = ImportSet()
        add_type_imports(service, type_imports)
        return [
            (HTTP_CLIENT_FILE, "client.py.j2",
             {**model, "imports": imports.lines(), "type_imports": type_imports.lines()}),
            (HTTP_CLIENT_TRANSPORT_FILE, "client_transport.py.j2", model),
            (HTTP_CLIENT_BUILDER_FILE, "client_builder.py.j2", model),
        ]


class ErrorsProcessor(Processor):
    """UI-facing and client-facing halves of the error mapping."""

    kind = HTTP_ERRORS

    def model(self, service):
        model = super().model(service)
        model["errors"] = [{"name": n, "message": m} for n, m in service.errors.items()]
        by_status: dict[int, set[str]] = {}
        for method in service.methods:
            for name, status in method.error_status_map.items():
                by_status.setdefault(status, set()).add(name)
        model["unique_statuses"] = [
            (status, next(iter(names)))
            for status, names in sorted(by_status.items())
            if len(names) == 1
        ]
        return model

    def files(self, service):
        model = self.model(service)
        imports = ImportSet()
        add_error_imports(service, imports)
        model["imports"] = imports.lines()
        return [
            (HTTP_UI_ERRORS_FILE, "errors_ui.py.j2", model),
            (HTTP_CLIENT_ERRORS_FILE, "errors_client.py.j2", model),
        ]


class _DecoratorProcessor(Processor):
    """Shared setup for generated wrappers around the service interface."""

    path: tuple[str, ...] = ()
    template = ""

    def files(self, service):
        imports = ImportSet()
        add_default_imports(service, imports)
        type_imports = ImportSet()
        add_type_imports(service, type_imports)
        model = {**self.model(service), "imports": imports.lines(), "type_imports": type_imports.lines()}
        return [(self.path, self.template, model)]


class InstrumentingProcessor(_DecoratorProcessor):
    kind = METRICS
    path = INSTRUMENTING_FILE
    template = "instrumenting.py.j2"


class LoggingProcessor(_DecoratorProcessor):
    kind = LOG
    path = LOGGING_FILE
    template = "logging.py.j2"


class MockProcessor(_DecoratorProcessor):
    kind = MOCK
    path = MOCK_FILE
    template = "mock.py.j2"


class DocumentProcessor(Processor):
    """Collects services for the API document written once at the end of a run."""

    kind = SWAGGER

    def __init__(self) -> None:
        self.services: list[ServiceSpec] = []

    def process(self, service, render):
        self.services.append(service)
        return []

    def discard(self, service: ServiceSpec) -> None:
        self.services = [s for s in self.services if s is not service]


def default_processors(document: DocumentProcessor | None = None) -> dict[str, Processor]:
    """A fresh processor set; ``document`` accumulates swagger services per run."""
    return {
        HTTP_SERVER: HTTPServerProcessor(),
        HTTP_CLIENT: HTTPClientProcessor(secure=False),
        HTTPS_CLIENT: HTTPClientProcessor(secure=True),
        HTTP_ERRORS: ErrorsProcessor(),
        METRICS: InstrumentingProcessor(),
        LOG: LoggingProcessor(),
        MOCK: MockProcessor(),
        SWAGGER: document if document is not None else DocumentProcessor(),
    }


def generate_service(
    service: ServiceSpec,
    render: Renderer,
    processors: dict[str, Processor] | None = None,
) -> list[GeneratedFile]:
    """Run every selected processor; later files replace earlier ones at the same path."""
    processors = processors if processors is not None else default_processors()
    files: dict[tuple[str, ...], GeneratedFile] = {}
    for kind in service.artifacts:
        processor = processors.get(kind)
        if processor is None:
            continue
        for generated in processor.process(service, render):
            files[generated.relative_path] = generated
    return list(files.values())
