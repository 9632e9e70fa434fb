"""Progress events emitted by pulls, builds and git operations."""
from dataclasses import dataclass
from typing import Callable, Generator, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Progress:
    stage: str  # pull, build, git or proxy
    message: str


ProgressStream = Generator[Progress, None, T]


def drain(stream: "ProgressStream[T]", on_progress: Callable[[Progress], None]) -> T:
    """Feed every event to `on_progress` and return the stream's result."""
    while True:
        try:
            event = next(stream)
        except StopIteration as stop:
            return stop.value
        on_progress(event)
