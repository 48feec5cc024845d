"""Decode and display the server's line-delimited JSON message stream.

Each line of a build response is one JSON object, e.g.

    {"stream": "Step 1/3 : FROM base\\n"}
    {"status": "Pulling", "id": "base", "progress": "[==>   ]"}
    {"errorDetail": {"code": 2, "message": "no such step"}, "error": "no such step"}

A message carrying an error ends the build.
"""

import logging
from typing import Any, Iterable, Iterator, Optional, TextIO

import pydantic
from pydantic import BaseModel, ConfigDict, Field

from provcli.client.progress import human_size
from provcli.errors import ResponseError, ServerError

logger = logging.getLogger(__name__)


class ErrorDetail(BaseModel):
    code: int = 0
    message: str = ""


class ProgressDetail(BaseModel):
    current: int = 0
    total: int = 0

    def render(self) -> str:
        if self.total <= 0:
            return human_size(self.current)
        return f"{human_size(self.current)}/{human_size(self.total)}"


class ServerMessage(BaseModel):
    """One decoded line of the response stream."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    stream: str = ""
    status: str = ""
    id: str = ""
    progress: str = ""
    progress_detail: Optional[ProgressDetail] = Field(default=None, alias="progressDetail")
    error_message: str = Field(default="", alias="error")
    error_detail: Optional[ErrorDetail] = Field(default=None, alias="errorDetail")
    aux: Optional[Any] = None

    @property
    def error(self) -> Optional[ErrorDetail]:
        """The terminal error carried by this message, if any.

        Older servers send only the "error" string; it is treated as an
        error with no code.
        """
        if self.error_detail is not None:
            if not self.error_detail.message and self.error_message:
                return ErrorDetail(code=self.error_detail.code, message=self.error_message)
            return self.error_detail
        if self.error_message:
            return ErrorDetail(message=self.error_message)
        return None

    def render(self) -> str:
        """Return the text shown to the user for this message."""
        prefix = f"{self.id}: " if self.id else ""
        if self.stream:
            return f"{prefix}{self.stream}"
        progress = self.progress
        if not progress and self.progress_detail is not None:
            progress = self.progress_detail.render()
        if progress:
            return f"{prefix}{self.status} {progress}\n"
        return f"{prefix}{self.status}\n"


def iter_server_messages(lines: Iterable[str]) -> Iterator[ServerMessage]:
    """Lazily decode response lines; blank lines are skipped."""
    for line in lines:
        if not line.strip():
            continue
        try:
            yield ServerMessage.model_validate_json(line)
        except pydantic.ValidationError as exc:
            raise ResponseError(f"Malformed message from server: {line!r}") from exc


def display_messages(messages: Iterable[ServerMessage], out: TextIO) -> None:
    """Write each message to out as it arrives.

    Stops at the first message carrying an error and raises ServerError
    with its message and code (a code of 0 becomes 1).
    """
    for message in messages:
        error = message.error
        if error is not None:
            raise ServerError(error.message, error.code)
        if message.aux is not None:
            logger.debug("Auxiliary message from server: %s", message.aux)
            continue
        out.write(message.render())
        out.flush()
