"""Generator configuration and fixed constants.

Artifact kinds, output file locations and the generated-file marker live
here so every stage agrees on them.
"""

from __future__ import annotations

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .errors import ConfigError

DEFAULT_MARKER = "@gtg"

# First line of every file the generator owns. Only the prefix is checked
# when deciding whether an existing file may be overwritten.
GENERATED_MARKER = b"# CODE GENERATED AUTOMATICALLY"
GENERATED_HEADER = GENERATED_MARKER + b". DO NOT EDIT.\n"

# JSON has no comments, so JSON documents carry the notice as a top-level
# extension member instead of a first line.
GENERATED_JSON_KEY = "x-generated"
GENERATED_JSON_NOTICE = "CODE GENERATED AUTOMATICALLY. DO NOT EDIT."


class MarkerStyle(str, Enum):
    """How a generated file says it belongs to the generator."""

    COMMENT = "comment"
    JSON_KEY = "json-key"


HTTP_SERVER = "http-server"
HTTP_CLIENT = "http-client"
HTTPS_CLIENT = "https-client"
HTTP_ERRORS = "http-errors"
METRICS = "metrics"
LOG = "log"
MOCK = "mock"
SWAGGER = "swagger"

# Processing order for a service; the order artifacts are listed in a
# docstring never matters.
ARTIFACT_KINDS: tuple[str, ...] = (
    HTTP_SERVER,
    HTTP_CLIENT,
    HTTPS_CLIENT,
    HTTP_ERRORS,
    METRICS,
    LOG,
    MOCK,
    SWAGGER,
)

HTTP_SERVER_FILE = ("httpserver", "server.py")
HTTP_SERVER_TRANSPORT_FILE = ("httpserver", "transport.py")
HTTP_SERVER_BUILDER_FILE = ("httpserver", "builder.py")
HTTP_CLIENT_FILE = ("httpclient", "client.py")
HTTP_CLIENT_TRANSPORT_FILE = ("httpclient", "transport.py")
HTTP_CLIENT_BUILDER_FILE = ("httpclient", "builder.py")
HTTP_UI_ERRORS_FILE = ("httperrors", "ui.py")
HTTP_CLIENT_ERRORS_FILE = ("httperrors", "client.py")
INSTRUMENTING_FILE = ("instrumenting.py",)
LOGGING_FILE = ("logging_middleware.py",)
MOCK_FILE = ("httpclient", "service_mock.py")

DOCUMENT_BASENAME = "swagger"
DEFAULT_TITLE = "API"
DEFAULT_VERSION = "1.0.0"


class DocumentFormat(str, Enum):
    YAML = "yaml"
    JSON = "json"


class Server(BaseModel):
    """One entry of the document ``servers`` list."""

    model_config = ConfigDict(frozen=True)

    url: str
    description: str = ""


class GenerationConfig(BaseModel):
    """Everything a run needs besides the source tree itself."""

    input_dir: Path = Path("./pkg/service")
    document_dir: Path = Path(".")
    document_format: DocumentFormat = DocumentFormat.YAML
    title: str = ""
    version: str = ""
    description: str = ""
    servers: list[Server] = Field(default_factory=list)
    marker: str = DEFAULT_MARKER

    @property
    def document_path(self) -> Path:
        return self.document_dir / f"{DOCUMENT_BASENAME}.{self.document_format.value}"


def parse_servers(text: str) -> list[Server]:
    """Parse ``url = description`` pairs, one per line.

    The literal two-character sequences ``\\r\\n`` are accepted as separators
    too, so the value can be passed on a single shell line.
    """
    servers: list[Server] = []
    normalized = text.replace("\\r\\n", "\n").replace("\\n", "\n")
    for raw in normalized.splitlines():
        entry = raw.strip()
        if not entry:
            continue
        parts = entry.split(" = ")
        if len(parts) != 2 or not parts[0].strip():
            raise ConfigError(
                f"wrong servers entry {entry!r}, expected "
                "'http://some.url = some url description'"
            )
        servers.append(Server(url=parts[0].strip(), description=parts[1].strip()))
    return servers
