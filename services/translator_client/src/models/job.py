"""Translation job state: one variant per phase, so impossible flag combinations cannot be built."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import ClassVar


class JobPhase(Enum):
    """Phase of the single translation job a client drives."""

    IDLE = "idle"
    UPLOADING = "uploading"
    TRANSLATING = "translating"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


class JobMode(Enum):
    """How the server executes the translation."""

    DIRECT = "direct"  # Result arrives in the translate response
    BACKGROUND = "background"  # Server-side task tracked by polling


ACTIVE_PHASES = frozenset({JobPhase.UPLOADING, JobPhase.TRANSLATING})
TERMINAL_PHASES = frozenset({JobPhase.DONE, JobPhase.FAILED, JobPhase.CANCELLED})


@dataclass(frozen=True)
class Progress:
    """A 0-100 progress value. Use one of the tagged subclasses."""

    value: int = 0

    def __post_init__(self) -> None:
        if not 0 <= self.value <= 100:
            raise ValueError(f"Progress must be within 0..100, got {self.value}")


@dataclass(frozen=True)
class EstimatedProgress(Progress):
    """Client-fabricated by a timer; advisory only."""

    authoritative: ClassVar[bool] = False


@dataclass(frozen=True)
class ReportedProgress(Progress):
    """Copied verbatim from the server's task status."""

    authoritative: ClassVar[bool] = True


@dataclass(frozen=True)
class SelectedFile:
    """A local document chosen for upload."""

    path: Path
    size: int

    @property
    def name(self) -> str:
        return self.path.name


@dataclass(frozen=True)
class Idle:
    phase: ClassVar[JobPhase] = JobPhase.IDLE


@dataclass(frozen=True)
class Uploading:
    filename: str
    progress: EstimatedProgress = field(default_factory=EstimatedProgress)
    status_message: str = "Uploading document..."
    phase: ClassVar[JobPhase] = JobPhase.UPLOADING


@dataclass(frozen=True)
class Translating:
    doc_id: str
    mode: JobMode
    progress: Progress = field(default_factory=EstimatedProgress)
    task_id: str | None = None
    status_message: str = "Translating..."
    phase: ClassVar[JobPhase] = JobPhase.TRANSLATING

    def __post_init__(self) -> None:
        if self.mode is JobMode.BACKGROUND:
            if not self.task_id:
                raise ValueError("Background translation requires a task_id")
            if not isinstance(self.progress, ReportedProgress):
                raise TypeError("Background translation progress must be server-reported")
        elif self.task_id is not None:
            raise ValueError("Direct translation has no task_id")
        elif not isinstance(self.progress, EstimatedProgress):
            raise TypeError("Direct translation progress must be estimated")


@dataclass(frozen=True)
class Done:
    doc_id: str
    message: str = "Translation completed successfully!"
    phase: ClassVar[JobPhase] = JobPhase.DONE


@dataclass(frozen=True)
class Failed:
    error: str
    doc_id: str | None = None
    phase: ClassVar[JobPhase] = JobPhase.FAILED


@dataclass(frozen=True)
class Cancelled:
    task_id: str
    doc_id: str | None = None
    phase: ClassVar[JobPhase] = JobPhase.CANCELLED


JobState = Idle | Uploading | Translating | Done | Failed | Cancelled


def is_active(state: JobState) -> bool:
    """Whether the state belongs to a job that is still in flight."""
    return state.phase in ACTIVE_PHASES
