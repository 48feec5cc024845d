"""Progress accounting for streamed uploads and downloads.

ProgressReader wraps a byte stream and reports how much of it has been
read. Events go to a ProgressOutput; StreamProgressOutput renders them as
a single self-overwriting line, LastProgressOutput drops everything but
the final event (used for quiet builds).
"""

import io
import time
from dataclasses import dataclass
from typing import BinaryIO, Callable, Optional, Protocol, TextIO

# Minimum seconds between two intermediate progress events
DEFAULT_INTERVAL = 0.1

_SIZE_UNITS = ("B", "kB", "MB", "GB", "TB", "PB", "EB")


@dataclass(frozen=True)
class ProgressEvent:
    """How far a transfer has got.

    total is None when the size is unknown. Exactly one event per transfer
    has is_final set.
    """

    current: int
    total: Optional[int] = None
    is_final: bool = False
    id: str = ""
    action: str = ""


class ProgressOutput(Protocol):
    def write_progress(self, event: ProgressEvent) -> None:
        ...  # noqa: PLR6301


def human_size(size: float) -> str:
    """Format a byte count with decimal units and 4 significant digits."""
    unit = 0
    while size >= 1000 and unit < len(_SIZE_UNITS) - 1:
        size /= 1000.0
        unit += 1
    return f"{size:.4g}{_SIZE_UNITS[unit]}"


def format_progress(event: ProgressEvent) -> str:
    amount = human_size(event.current)
    if event.total:
        amount = f"{amount}/{human_size(event.total)}"
    parts = [p for p in (event.id and f"{event.id}:", event.action, amount) if p]
    return "  ".join(parts)


class StreamProgressOutput:
    """Render each event on one line, rewritten in place with a carriage return."""

    def __init__(self, out: TextIO):
        self.out = out

    def write_progress(self, event: ProgressEvent) -> None:
        end = "\n" if event.is_final else ""
        self.out.write(f"\r{format_progress(event)}{end}")
        self.out.flush()


class LastProgressOutput:
    """Forward only the final event; non-interactive builds stay quiet."""

    def __init__(self, output: ProgressOutput):
        self.output = output

    def write_progress(self, event: ProgressEvent) -> None:
        if not event.is_final:
            return
        self.output.write_progress(event)


class ProgressReader(io.RawIOBase):
    """A read-only stream that reports progress while it is consumed.

    Intermediate events are rate-limited to one per interval seconds; the
    event that reaches a known total is always sent. The final event is
    sent once, at EOF or on close, whichever comes first. Closing the
    reader closes the wrapped stream.
    """

    def __init__(
        self,
        source: BinaryIO,
        output: ProgressOutput,
        total: Optional[int] = None,
        progress_id: str = "",
        action: str = "",
        interval: float = DEFAULT_INTERVAL,
        clock: Callable[[], float] = time.monotonic,
    ):
        super().__init__()
        self._source = source
        self._output = output
        self.total = total
        self.current = 0
        self._id = progress_id
        self._action = action
        self._interval = interval
        self._clock = clock
        self._last_update: Optional[float] = None
        self._finished = False

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        if self.closed:
            raise ValueError("I/O operation on closed stream")
        data = self._source.read(len(buffer))
        if not data:
            self._finish()
            return 0
        n = len(data)
        buffer[:n] = data
        self.current += n
        self._update()
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._finish()
        finally:
            super().close()
            self._source.close()

    def _update(self) -> None:
        now = self._clock()
        reached_total = self.total is not None and self.current >= self.total
        due = self._last_update is None or now - self._last_update >= self._interval
        if reached_total or due:
            self._last_update = now
            self._emit(is_final=False)

    def _finish(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._emit(is_final=True)

    def _emit(self, is_final: bool) -> None:
        self._output.write_progress(ProgressEvent(
            current=self.current,
            total=self.total,
            is_final=is_final,
            id=self._id,
            action=self._action,
        ))
