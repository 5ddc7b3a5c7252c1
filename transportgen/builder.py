"""Build a ServiceSpec from one interface declaration.

Runs the directive chain over every marked method, fills in defaults and
checks the pieces against each other. Any failure aborts the whole
interface so a server is never generated without a matching client.
"""

from __future__ import annotations

from .config import ARTIFACT_KINDS, HTTP_CLIENT, HTTP_ERRORS, HTTP_SERVER, HTTPS_CLIENT, MOCK, Server
from .directives import is_marked, marked_text
from .errors import SemanticValidationError
from .loader import InterfaceDecl, MethodDecl, ParamKind
from .log import get_logger
from .models import (
    FORM_CONTENT_TYPE,
    JSON_CONTENT_TYPE,
    BodyKind,
    BodyMode,
    DocumentInfo,
    DocumentMeta,
    MethodDraft,
    MethodSpec,
    ParameterBinding,
    ParamSource,
    ServiceSpec,
)
from .naming import default_uri_path, first_line, humanize_error, package_name
from .parser import DOCUMENT_CHAIN, parse
from .schema import repeated

logger = get_logger(__name__)

# Artifacts whose generated code imports the httperrors package.
_NEEDS_ERRORS = {HTTP_SERVER, HTTP_CLIENT, HTTPS_CLIENT}

# Imported names accepted in an errors directive.
IMPORTED_ERROR_SUFFIXES = ("Error", "Exception", "Warning")

# Attributes of generated classes that a service method must not shadow.
_CLIENT_ATTRIBUTES = frozenset({"close", "aclose"})
_MOCK_ATTRIBUTES = frozenset({"calls"})


def media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


def is_json(content_type: str) -> bool:
    mt = media_type(content_type)
    return mt == JSON_CONTENT_TYPE or mt.endswith("+json")


def select_artifacts(decl: InterfaceDecl, marker: str) -> tuple[str, ...]:
    """Read the artifact list from the interface docstring."""
    requested: set[str] = set()
    for line in decl.docstring.splitlines():
        text = marked_text(line, marker)
        if not text or text.split()[0] not in ARTIFACT_KINDS:
            continue
        for word in text.split():
            if word in ARTIFACT_KINDS:
                requested.add(word)
            else:
                logger.warning("%s: unknown artifact kind %r ignored", decl.name, word)

    if requested & _NEEDS_ERRORS:
        requested.add(HTTP_ERRORS)
    if HTTPS_CLIENT in requested and HTTP_CLIENT in requested:
        logger.info("%s: both client kinds requested, generating the secure one", decl.name)
        requested.discard(HTTP_CLIENT)
    return tuple(kind for kind in ARTIFACT_KINDS if kind in requested)


def _interface_document(decl: InterfaceDecl, marker: str) -> MethodDraft:
    """Document-scoped directives declared on the interface itself."""
    lines = [
        line for line in decl.docstring.splitlines()
        if (text := marked_text(line, marker)) and text.split()[0] not in ARTIFACT_KINDS
    ]
    return parse(lines, marker, chain=DOCUMENT_CHAIN, method=decl.name)


def is_eligible(method: MethodDecl, marker: str) -> bool:
    """A method takes part when its docstring's leading line is marked."""
    leading = first_line(method.docstring)
    return bool(leading) and is_marked(leading, marker)


def _bind_parameters(
    decl: InterfaceDecl, method: MethodDecl, draft: MethodDraft
) -> list[ParameterBinding]:
    def fail(message: str) -> SemanticValidationError:
        return SemanticValidationError(message, interface=decl.name, method=method.name)

    names = [p.name for p in method.params]
    for param in method.params:
        if param.kind in (ParamKind.POSITIONAL_ONLY, ParamKind.VAR_POSITIONAL, ParamKind.VAR_KEYWORD):
            raise fail(f"parameter {param.name!r} ({param.kind.value}) cannot be bound to a request field")

    annotations = {p.name: p.annotation for p in method.params}
    for variable in draft.path_variables:
        if variable not in names:
            raise fail(f"path variable {{{variable}}} has no matching parameter")
        if repeated(annotations[variable]) is not None:
            raise fail(f"path variable {{{variable}}} cannot hold a list")

    sources: dict[str, tuple[ParamSource, str]] = {
        variable: (ParamSource.PATH, variable) for variable in draft.path_variables
    }
    for name, key in draft.query.items():
        if name not in names:
            raise fail(f"query binding {name!r} has no matching parameter")
        if name in sources:
            raise fail(f"parameter {name!r} is bound twice")
        sources[name] = (ParamSource.QUERY, key)
    for header, name in draft.headers.items():
        if name not in names:
            raise fail(f"header {header!r} is bound to unknown parameter {name!r}")
        if name in sources:
            raise fail(f"parameter {name!r} is bound twice")
        sources[name] = (ParamSource.HEADER, header)

    for field in draft.json_tags:
        if field not in names or field in sources:
            raise fail(f"json-tag {field!r} does not name a body parameter")

    bindings = []
    for param in method.params:
        source, key = sources.get(param.name, (ParamSource.BODY, draft.json_tags.get(param.name, param.name)))
        bindings.append(ParameterBinding(
            name=param.name,
            source=source,
            type_hint=param.annotation,
            key=key,
            default=param.default,
            keyword_only=param.kind is ParamKind.KEYWORD_ONLY,
        ))
    return bindings


def _body_mode(decl: InterfaceDecl, method: MethodDecl, content_type: str, body: list[ParameterBinding]) -> BodyMode:
    if not body:
        return BodyMode.NONE
    if is_json(content_type):
        return BodyMode.JSON
    if media_type(content_type) == FORM_CONTENT_TYPE:
        return BodyMode.FORM
    if len(body) != 1:
        raise SemanticValidationError(
            f"content type {content_type!r} can carry exactly one body parameter, "
            f"got {', '.join(p.name for p in body)}",
            interface=decl.name,
            method=method.name,
        )
    return BodyMode.RAW


def build_method(decl: InterfaceDecl, method: MethodDecl, marker: str) -> tuple[MethodSpec, MethodDraft]:
    """Parse and validate one eligible method."""
    def fail(message: str) -> SemanticValidationError:
        return SemanticValidationError(message, interface=decl.name, method=method.name)

    draft = parse((method.docstring or "").splitlines(), marker, method=method.name)

    bindings = _bind_parameters(decl, method, draft)
    body = [b for b in bindings if b.source is ParamSource.BODY]

    content_type = draft.request_content_type or JSON_CONTENT_TYPE
    body_mode = _body_mode(decl, method, content_type, body)

    for error in draft.errors:
        if error in decl.error_types:
            continue
        if error not in decl.imported_names:
            raise fail(f"error {error!r} is neither declared nor imported by {decl.source_path.name}")
        if not error.endswith(IMPORTED_ERROR_SUFFIXES):
            raise fail(f"imported name {error!r} is not an exception class")

    response_content_type = draft.response_content_type or JSON_CONTENT_TYPE
    returns = method.returns or "Any"
    if returns == "None":
        if draft.response_body_field or draft.response_headers:
            raise fail("response-body and response-header need a return value")
        body_kind = BodyKind.EMPTY
    elif draft.response_body_field:
        body_kind = BodyKind.FIELD
    elif not is_json(response_content_type):
        body_kind = BodyKind.RAW
    else:
        body_kind = BodyKind.JSON

    spec = MethodSpec(
        name=method.name,
        verb=draft.verb or "POST",
        uri_template=draft.uri_template or default_uri_path(decl.name, method.name),
        api_path=draft.api_path,
        path_variables=tuple(draft.path_variables),
        parameters=tuple(bindings),
        request_content_type=content_type,
        request_body_mode=body_mode,
        json_tag_overrides=dict(draft.json_tags),
        response_status=draft.response_status or 200,
        response_content_type=response_content_type,
        response_content_encoding=draft.response_content_encoding,
        response_headers=dict(draft.response_headers),
        response_json_tags=dict(draft.response_json_tags),
        response_body_kind=body_kind,
        response_body_field=draft.response_body_field,
        error_status_map=dict(draft.errors),
        document_meta=DocumentMeta(summary=draft.summary, description=draft.description),
        returns=returns,
        is_async=method.is_async,
    )
    return spec, draft


def _check_reserved(decl: InterfaceDecl, methods: list[MethodSpec], artifacts: tuple[str, ...]) -> None:
    names = {m.name for m in methods}
    reserved: set[str] = set()
    if HTTP_CLIENT in artifacts or HTTPS_CLIENT in artifacts:
        reserved |= _CLIENT_ATTRIBUTES
    if MOCK in artifacts:
        reserved |= _MOCK_ATTRIBUTES | {f"{name}_func" for name in names}
    clashes = sorted(names & reserved)
    if clashes:
        raise SemanticValidationError(
            f"method name {clashes[0]!r} clashes with an attribute of the generated client or mock",
            interface=decl.name,
            method=clashes[0],
        )


def _merge_document(drafts: list[MethodDraft]) -> DocumentInfo:
    title = version = description = ""
    servers: dict[str, Server] = {}
    for draft in drafts:
        title = draft.title or title
        version = draft.version or version
        for server in draft.servers:
            servers.setdefault(server.url, server)
    # Only the interface-level draft contributes a document description;
    # method descriptions belong to their operation.
    if drafts:
        description = drafts[0].description
    return DocumentInfo(title=title, version=version, description=description, servers=tuple(servers.values()))


def build_service(decl: InterfaceDecl, marker: str) -> ServiceSpec | None:
    """Return the service specification, or None when there is nothing to emit."""
    artifacts = select_artifacts(decl, marker)
    if not artifacts:
        logger.info("%s: no artifact kinds requested, skipping", decl.name)
        return None

    interface_draft = _interface_document(decl, marker)

    methods: list[MethodSpec] = []
    drafts: list[MethodDraft] = [interface_draft]
    for method in decl.methods:
        if not is_eligible(method, marker):
            continue
        spec, draft = build_method(decl, method, marker)
        methods.append(spec)
        drafts.append(draft)

    if not methods:
        logger.info("%s: no annotated methods, skipping", decl.name)
        return None

    flavours = {m.is_async for m in methods}
    if len(flavours) > 1:
        raise SemanticValidationError("mixes async and sync methods", interface=decl.name)

    routes: dict[str, str] = {}
    for method in methods:
        if method.route in routes:
            raise SemanticValidationError(
                f"route {method.route} is declared by both {routes[method.route]} and {method.name}",
                interface=decl.name,
            )
        routes[method.route] = method.name

    _check_reserved(decl, methods, artifacts)

    output_dir = decl.source_path.parent / package_name(decl.name)
    if output_dir.with_suffix(".py").exists():
        raise SemanticValidationError(
            f"module {output_dir.name}.py would shadow the generated package {output_dir.name}",
            interface=decl.name,
        )

    errors: dict[str, str] = {}
    for method in methods:
        for name in method.error_status_map:
            errors.setdefault(name, decl.error_types.get(name) or humanize_error(name))

    eligible = {m.name for m in methods}
    type_names = {decl.name}
    default_names: set[str] = set()
    for method in decl.methods:
        if method.name in eligible:
            type_names.update(method.annotation_names)
            default_names.update(method.default_names)

    return ServiceSpec(
        interface_name=decl.name,
        methods=tuple(methods),
        source_import_path=decl.import_path,
        source_path=decl.source_path,
        output_dir=output_dir,
        artifacts=artifacts,
        document=_merge_document(drafts),
        errors=errors,
        type_names=tuple(sorted(type_names)),
        default_names=tuple(sorted(default_names)),
        is_async=methods[0].is_async,
    )
