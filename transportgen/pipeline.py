"""One generation run: discover, build, render, validate, write, document."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from .builder import build_service
from .config import GenerationConfig
from .document import aggregate, document_file
from .errors import AggregationConflictError, DirectiveSyntaxError, SemanticValidationError
from .loader import discover
from .log import get_logger
from .models import ServiceSpec
from .processors import DocumentProcessor, Processor, default_processors, generate_service
from .regen import Outcome, write_file
from .render import JinjaRenderer, Renderer
from .validator import validate_python

logger = get_logger(__name__)


@dataclass
class RunReport:
    """What one run did, file by file."""

    written: list[Path] = field(default_factory=list)
    unchanged: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)
    failures: dict[str, str] = field(default_factory=dict)
    services: list[str] = field(default_factory=list)
    document: Outcome | None = None
    document_path: Path | None = None

    @property
    def ok(self) -> bool:
        return not self.failures

    def record(self, path: Path, outcome: Outcome) -> None:
        if outcome is Outcome.UNCHANGED:
            self.unchanged.append(path)
        elif outcome is Outcome.SKIPPED:
            self.skipped.append(path)
        else:
            self.written.append(path)


def _emit_service(
    service: ServiceSpec,
    render: Renderer,
    processors: dict[str, Processor],
    document: DocumentProcessor,
    report: RunReport,
) -> None:
    files = generate_service(service, render, processors)
    errors = validate_python(files)
    if errors:
        document.discard(service)
        for path, message in errors.items():
            logger.error("%s: generated %s is invalid: %s", service.interface_name, path, message)
        report.failures[service.interface_name] = "; ".join(f"{p}: {m}" for p, m in errors.items())
        return

    for generated in files:
        path = service.output_dir.joinpath(*generated.relative_path)
        report.record(path, write_file(path, generated.content, marker=generated.marker))
    report.services.append(service.interface_name)


def run(config: GenerationConfig, render: Renderer | None = None) -> RunReport:
    """Generate every artifact under ``config.input_dir``.

    Directive and semantic errors fail only their own service; a document
    conflict fails only the document. CollaboratorError propagates.
    """
    render = render or JinjaRenderer()
    document = DocumentProcessor()
    processors = default_processors(document)
    report = RunReport()

    interfaces = discover(config.input_dir, config.marker)
    logger.info("found %d annotated interfaces under %s", len(interfaces), config.input_dir)

    for decl in interfaces:
        try:
            service = build_service(decl, config.marker)
        except (DirectiveSyntaxError, SemanticValidationError) as exc:
            logger.error("%s (%s): %s", decl.name, decl.source_path, exc)
            report.failures[decl.name] = str(exc)
            continue
        if service is None:
            continue
        _emit_service(service, render, processors, document, report)

    if document.services:
        try:
            model = aggregate(document.services, config)
        except AggregationConflictError as exc:
            logger.error("API document not written: %s", exc)
            report.failures["document"] = str(exc)
        else:
            generated = document_file(model, config.document_format)
            path = config.document_path
            report.document = write_file(path, generated.content, marker=generated.marker)
            report.document_path = path
            report.record(path, report.document)

    logger.info(
        "%d written, %d unchanged, %d skipped, %d failed",
        len(report.written), len(report.unchanged), len(report.skipped), len(report.failures),
    )
    return report
