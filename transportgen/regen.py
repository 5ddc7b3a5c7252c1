"""Decide whether a target file may be written, and write it atomically.

A file belongs to the generator when its first line starts with the
generated marker, or, for JSON documents, when its top-level object carries
the generated notice. Anything else at a target path is handwritten and is
left alone.
"""

from __future__ import annotations

import json
import os
import tempfile
from enum import Enum
from pathlib import Path

from .config import GENERATED_HEADER, GENERATED_JSON_KEY, GENERATED_JSON_NOTICE, GENERATED_MARKER, MarkerStyle
from .errors import CollaboratorError
from .log import get_logger

logger = get_logger(__name__)


class FileState(str, Enum):
    ABSENT = "absent"
    GENERATED = "generated"
    HANDWRITTEN = "handwritten"


class Outcome(str, Enum):
    CREATED = "created"
    OVERWRITTEN = "overwritten"
    UNCHANGED = "unchanged"
    SKIPPED = "skipped"


def classify(path: Path, marker: bytes = GENERATED_MARKER) -> FileState:
    """Look only at the first line of ``path``."""
    try:
        with path.open("rb") as fh:
            first = fh.readline()
    except FileNotFoundError:
        return FileState.ABSENT
    except IsADirectoryError:
        return FileState.HANDWRITTEN
    except OSError as exc:
        raise CollaboratorError(f"cannot read {path}: {exc}") from exc
    return FileState.GENERATED if first.startswith(marker) else FileState.HANDWRITTEN


def classify_json(path: Path) -> FileState:
    """Look for the generated notice among the top-level members of ``path``."""
    try:
        raw = path.read_bytes()
    except FileNotFoundError:
        return FileState.ABSENT
    except IsADirectoryError:
        return FileState.HANDWRITTEN
    except OSError as exc:
        raise CollaboratorError(f"cannot read {path}: {exc}") from exc
    try:
        data = json.loads(raw)
    except ValueError:
        return FileState.HANDWRITTEN
    if isinstance(data, dict) and data.get(GENERATED_JSON_KEY) == GENERATED_JSON_NOTICE:
        return FileState.GENERATED
    return FileState.HANDWRITTEN


def with_header(content: bytes) -> bytes:
    return GENERATED_HEADER + content


def _atomic_write(path: Path, content: bytes) -> None:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(content)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
    except OSError as exc:
        raise CollaboratorError(f"cannot write {path}: {exc}") from exc


def write_file(path: Path, content: bytes, *, marker: MarkerStyle = MarkerStyle.COMMENT) -> Outcome:
    """Write ``content`` to ``path`` unless a handwritten file is in the way.

    ``MarkerStyle.COMMENT`` prepends the header line. ``MarkerStyle.JSON_KEY``
    expects ``content`` to carry the notice member already.
    """
    if marker is MarkerStyle.COMMENT:
        content = with_header(content)
        state = classify(path)
    else:
        state = classify_json(path)
    if state is FileState.HANDWRITTEN:
        logger.warning("skipping %s: not a generated file", path)
        return Outcome.SKIPPED

    if state is FileState.GENERATED:
        try:
            if path.read_bytes() == content:
                logger.debug("%s unchanged", path)
                return Outcome.UNCHANGED
        except OSError as exc:
            raise CollaboratorError(f"cannot read {path}: {exc}") from exc

    _atomic_write(path, content)
    outcome = Outcome.CREATED if state is FileState.ABSENT else Outcome.OVERWRITTEN
    logger.info("%s %s", outcome.value, path)
    return outcome
