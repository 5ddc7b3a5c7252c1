"""Data model shared by the parser, builder, processors and aggregator.

``MethodDraft`` is the mutable accumulator the directive chain fills in;
everything else is frozen once the builder hands it out.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Iterator

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .config import MarkerStyle, Server

JSON_CONTENT_TYPE = "application/json"
FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class ParamSource(str, Enum):
    PATH = "path"
    QUERY = "query"
    HEADER = "header"
    BODY = "body"


class BodyKind(str, Enum):
    JSON = "json"
    FIELD = "field"
    RAW = "raw"
    EMPTY = "empty"


class BodyMode(str, Enum):
    JSON = "json"
    FORM = "form"
    RAW = "raw"
    NONE = "none"


class ParameterBinding(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    source: ParamSource
    type_hint: str = ""
    key: str
    default: str | None = None
    keyword_only: bool = False

    @property
    def required(self) -> bool:
        return self.default is None


class DocumentMeta(BaseModel):
    model_config = ConfigDict(frozen=True)

    summary: str = ""
    description: str = ""


class DocumentInfo(BaseModel):
    """Global document metadata declared in source."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    version: str = ""
    description: str = ""
    servers: tuple[Server, ...] = ()


class MethodDraft(BaseModel):
    """Partial method specification accumulated from directive lines."""

    verb: str | None = None
    uri_template: str | None = None
    path_variables: list[str] = Field(default_factory=list)
    api_path: str = ""
    query: dict[str, str] = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    request_content_type: str | None = None
    json_tags: dict[str, str] = Field(default_factory=dict)
    errors: dict[str, int] = Field(default_factory=dict)

    response_status: int | None = None
    response_headers: dict[str, str] = Field(default_factory=dict)
    response_content_type: str | None = None
    response_content_encoding: str = ""
    response_json_tags: dict[str, str] = Field(default_factory=dict)
    response_body_field: str = ""

    summary: str = ""
    description: str = ""
    title: str = ""
    version: str = ""
    servers: list[Server] = Field(default_factory=list)


class MethodSpec(BaseModel):
    """Validated wire contract of one service operation."""

    model_config = ConfigDict(frozen=True)

    name: str
    verb: str
    uri_template: str
    api_path: str = ""
    path_variables: tuple[str, ...] = ()
    parameters: tuple[ParameterBinding, ...] = ()
    request_content_type: str = JSON_CONTENT_TYPE
    request_body_mode: BodyMode = BodyMode.NONE
    json_tag_overrides: dict[str, str] = Field(default_factory=dict)
    response_status: int = 200
    response_content_type: str = JSON_CONTENT_TYPE
    response_content_encoding: str = ""
    response_headers: dict[str, str] = Field(default_factory=dict)
    response_json_tags: dict[str, str] = Field(default_factory=dict)
    response_body_kind: BodyKind = BodyKind.JSON
    response_body_field: str = ""
    error_status_map: dict[str, int] = Field(default_factory=dict)
    document_meta: DocumentMeta = DocumentMeta()
    returns: str = "None"
    is_async: bool = False

    @property
    def full_path(self) -> str:
        return self.api_path.rstrip("/") + self.uri_template

    @property
    def route(self) -> str:
        return f"{self.verb} {self.full_path}"

    def bindings(self, source: ParamSource) -> list[ParameterBinding]:
        return [p for p in self.parameters if p.source is source]


class ServiceSpec(BaseModel):
    """All method specifications of one annotated interface."""

    model_config = ConfigDict(frozen=True)

    interface_name: str
    methods: tuple[MethodSpec, ...]
    source_import_path: str
    source_path: Path
    output_dir: Path
    artifacts: tuple[str, ...] = ()
    document: DocumentInfo = DocumentInfo()
    errors: dict[str, str] = Field(default_factory=dict)
    type_names: tuple[str, ...] = ()
    default_names: tuple[str, ...] = ()
    is_async: bool = False

    @field_validator("methods")
    @classmethod
    def _not_empty(cls, value: tuple[MethodSpec, ...]) -> tuple[MethodSpec, ...]:
        if not value:
            raise ValueError("a service needs at least one annotated method")
        return value


class GeneratedFile(BaseModel):
    """One rendered artifact, relative to the owning output directory."""

    model_config = ConfigDict(frozen=True)

    relative_path: tuple[str, ...]
    content: bytes
    marker: MarkerStyle = MarkerStyle.COMMENT

    @property
    def display_path(self) -> str:
        return "/".join(self.relative_path)


class ImportSet:
    """Insertion-ordered, de-duplicated ``from module import name`` set.

    One instance is threaded through every call that contributes imports to
    a single target file.
    """

    def __init__(self) -> None:
        self._modules: dict[str, dict[str, None]] = {}

    def add(self, module: str, *names: str) -> None:
        bucket = self._modules.setdefault(module, {})
        for name in names:
            bucket.setdefault(name, None)

    def __bool__(self) -> bool:
        return any(self._modules.values())

    def __iter__(self) -> Iterator[tuple[str, list[str]]]:
        for module, names in self._modules.items():
            if names:
                yield module, list(names)

    def lines(self) -> list[str]:
        return [f"from {module} import {', '.join(names)}" for module, names in self]
