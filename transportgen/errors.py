"""Error taxonomy for a generation run.

Directive and semantic errors abort the owning service only; aggregation
conflicts abort the document step only; collaborator failures abort the run.
"""

from __future__ import annotations


class GenerationError(Exception):
    """Base class for every error raised by transportgen."""


class ConfigError(GenerationError):
    """Invalid generator configuration (CLI flags, server list)."""


class DirectiveSyntaxError(GenerationError):
    """A recognised directive carries a malformed argument."""

    def __init__(self, message: str, *, method: str = "", line: str = "") -> None:
        self.message = message
        self.method = method
        self.line = line
        super().__init__(str(self))

    def __str__(self) -> str:
        where = f"{self.method}: " if self.method else ""
        context = f" (in {self.line.strip()!r})" if self.line else ""
        return f"{where}{self.message}{context}"


class SemanticValidationError(GenerationError):
    """Directives parsed but do not form a consistent contract."""

    def __init__(self, message: str, *, interface: str = "", method: str = "") -> None:
        self.message = message
        self.interface = interface
        self.method = method
        super().__init__(str(self))

    def __str__(self) -> str:
        owner = ".".join(p for p in (self.interface, self.method) if p)
        return f"{owner}: {self.message}" if owner else self.message


class AggregationConflictError(GenerationError):
    """Two operations claim the same verb and path in the API document."""

    def __init__(self, verb: str, path: str, first: str, second: str) -> None:
        self.verb = verb
        self.path = path
        self.first = first
        self.second = second
        super().__init__(
            f"{verb.upper()} {path} is declared by both {first} and {second}"
        )


class CollaboratorError(GenerationError):
    """File-system read/write or import path resolution failed."""
