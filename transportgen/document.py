"""Aggregate every swagger-enabled service into one OpenAPI 3 document."""

from __future__ import annotations

import json
from http import HTTPStatus
from typing import Any

import yaml
from pydantic import BaseModel, Field

from .config import (
    DEFAULT_TITLE,
    DEFAULT_VERSION,
    DOCUMENT_BASENAME,
    GENERATED_JSON_KEY,
    GENERATED_JSON_NOTICE,
    DocumentFormat,
    GenerationConfig,
    MarkerStyle,
    Server,
)
from .errors import AggregationConflictError
from .log import get_logger
from .models import (
    JSON_CONTENT_TYPE,
    BodyKind,
    BodyMode,
    GeneratedFile,
    MethodSpec,
    ParamSource,
    ServiceSpec,
)
from .naming import operation_id
from .schema import annotation_schema

logger = get_logger(__name__)

OPENAPI_VERSION = "3.0.3"
ERROR_SCHEMA_REF = "#/components/schemas/Error"

ERROR_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "error": {"type": "string"},
        "message": {"type": "string"},
    },
    "required": ["error", "message"],
}


class DocumentModel(BaseModel):
    """Aggregated API description; ``paths`` maps path -> verb -> operation."""

    title: str = DEFAULT_TITLE
    version: str = DEFAULT_VERSION
    description: str = ""
    servers: list[Server] = Field(default_factory=list)
    paths: dict[str, dict[str, dict[str, Any]]] = Field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        info: dict[str, Any] = {"title": self.title, "version": self.version}
        if self.description:
            info["description"] = self.description
        doc: dict[str, Any] = {"openapi": OPENAPI_VERSION, "info": info}
        if self.servers:
            doc["servers"] = [
                {"url": s.url, "description": s.description} if s.description else {"url": s.url}
                for s in self.servers
            ]
        doc["paths"] = self.paths
        doc["components"] = {"schemas": {"Error": ERROR_SCHEMA}}
        return doc


def _parameters(method: MethodSpec) -> list[dict[str, Any]]:
    params = []
    for source in (ParamSource.PATH, ParamSource.QUERY, ParamSource.HEADER):
        for binding in method.bindings(source):
            params.append({
                "name": binding.key,
                "in": source.value,
                "required": source is ParamSource.PATH or binding.required,
                "schema": annotation_schema(binding.type_hint),
            })
    return params


def _request_body(method: MethodSpec) -> dict[str, Any] | None:
    body = method.bindings(ParamSource.BODY)
    if method.request_body_mode is BodyMode.NONE:
        return None
    if method.request_body_mode is BodyMode.RAW:
        raw = {"type": "string"} if body[0].type_hint == "str" else {"type": "string", "format": "binary"}
        return {"required": body[0].required, "content": {method.request_content_type: {"schema": raw}}}

    schema: dict[str, Any] = {
        "type": "object",
        "properties": {b.key: annotation_schema(b.type_hint) for b in body},
    }
    required = [b.key for b in body if b.required]
    if required:
        schema["required"] = required
    return {
        "required": bool(required),
        "content": {method.request_content_type: {"schema": schema}},
    }


def _success(method: MethodSpec) -> dict[str, Any]:
    try:
        description = HTTPStatus(method.response_status).phrase
    except ValueError:
        description = "Success"
    response: dict[str, Any] = {"description": description}
    if method.response_headers:
        response["headers"] = {
            header: {"schema": {"type": "string"}} for header in method.response_headers
        }
    if method.response_body_kind is BodyKind.EMPTY:
        return response

    if method.response_body_kind is BodyKind.JSON:
        schema = annotation_schema(method.returns)
    elif method.response_body_kind is BodyKind.FIELD:
        schema = {}
    else:
        schema = {"type": "string"} if method.returns == "str" else {"type": "string", "format": "binary"}
    response["content"] = {method.response_content_type: {"schema": schema}}
    return response


def _operation(service: ServiceSpec, method: MethodSpec) -> dict[str, Any]:
    op: dict[str, Any] = {
        "operationId": operation_id(service.interface_name, method.name),
        "tags": [service.interface_name],
    }
    if method.document_meta.summary:
        op["summary"] = method.document_meta.summary
    if method.document_meta.description:
        op["description"] = method.document_meta.description
    params = _parameters(method)
    if params:
        op["parameters"] = params
    body = _request_body(method)
    if body is not None:
        op["requestBody"] = body

    responses: dict[str, Any] = {str(method.response_status): _success(method)}
    by_status: dict[int, list[str]] = {}
    for name, status in method.error_status_map.items():
        by_status.setdefault(status, []).append(name)
    for status, names in sorted(by_status.items()):
        responses[str(status)] = {
            "description": "; ".join(service.errors.get(n, n) for n in names),
            "content": {JSON_CONTENT_TYPE: {"schema": {"$ref": ERROR_SCHEMA_REF}}},
        }
    op["responses"] = responses
    return op


def aggregate(services: list[ServiceSpec], config: GenerationConfig | None = None) -> DocumentModel:
    """Merge all services into one document.

    Raises AggregationConflictError when two operations share verb and path.
    """
    config = config or GenerationConfig()
    paths: dict[str, dict[str, dict[str, Any]]] = {}
    title = version = description = ""
    servers: dict[str, Server] = {s.url: s for s in config.servers}

    for service in services:
        info = service.document
        title = info.title or title
        version = info.version or version
        description = info.description or description
        for server in info.servers:
            servers.setdefault(server.url, server)

        for method in service.methods:
            verb = method.verb.lower()
            operations = paths.setdefault(method.full_path, {})
            if verb in operations:
                raise AggregationConflictError(
                    method.verb,
                    method.full_path,
                    operations[verb]["operationId"],
                    operation_id(service.interface_name, method.name),
                )
            operations[verb] = _operation(service, method)

    logger.debug("aggregated %d services into %d paths", len(services), len(paths))
    return DocumentModel(
        title=config.title or title or DEFAULT_TITLE,
        version=config.version or version or DEFAULT_VERSION,
        description=config.description or description,
        servers=list(servers.values()),
        paths=paths,
    )


def serialize(model: DocumentModel, fmt: DocumentFormat) -> bytes:
    """Encode the document; YAML keeps insertion order like the JSON form."""
    data = model.to_dict()
    if fmt is DocumentFormat.JSON:
        data = {GENERATED_JSON_KEY: GENERATED_JSON_NOTICE, **data}
        return (json.dumps(data, indent=2) + "\n").encode("utf-8")
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True, default_flow_style=False).encode("utf-8")


def document_file(model: DocumentModel, fmt: DocumentFormat) -> GeneratedFile:
    """The document as a file, marked the way its format allows."""
    return GeneratedFile(
        relative_path=(f"{DOCUMENT_BASENAME}.{fmt.value}",),
        content=serialize(model, fmt),
        marker=MarkerStyle.JSON_KEY if fmt is DocumentFormat.JSON else MarkerStyle.COMMENT,
    )
