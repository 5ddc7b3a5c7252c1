"""Generate HTTP transport code from annotated Python service interfaces."""

from __future__ import annotations

from .config import GenerationConfig
from .errors import (
    AggregationConflictError,
    CollaboratorError,
    ConfigError,
    DirectiveSyntaxError,
    GenerationError,
    SemanticValidationError,
)
from .pipeline import RunReport, run

__version__ = "0.1.0"

__all__ = [
    "AggregationConflictError",
    "CollaboratorError",
    "ConfigError",
    "DirectiveSyntaxError",
    "GenerationConfig",
    "GenerationError",
    "RunReport",
    "SemanticValidationError",
    "run",
]
