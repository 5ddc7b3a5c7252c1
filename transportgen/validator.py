"""Syntax checks for generated files before anything touches disk."""

from __future__ import annotations

import ast

from .models import GeneratedFile


def validate_python(files: list[GeneratedFile]) -> dict[str, str]:
    """Check generated Python files for syntax errors.

    Returns dict of {display path: error message} for files with errors.
    """
    errors = {}
    for generated in files:
        if not generated.display_path.endswith(".py"):
            continue
        try:
            ast.parse(generated.content, filename=generated.display_path)
        except SyntaxError as e:
            errors[generated.display_path] = f"SyntaxError: {e.msg} (line {e.lineno})"
    return errors
