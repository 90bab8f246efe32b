"""
Playback timeline: maps elapsed time onto steps and transition progress.

The mapping is pure so live playback and frame-by-frame export see exactly
the same states for the same elapsed time.
"""
from dataclasses import dataclass
from typing import Union


@dataclass(frozen=True)
class Holding:
    """A single step is shown without motion."""
    step_index: int


@dataclass(frozen=True)
class Transitioning:
    """Step ``from_index`` is morphing into ``to_index``."""
    from_index: int
    to_index: int
    progress: float


TimelineState = Union[Holding, Transitioning]


@dataclass(frozen=True)
class Timeline:
    step_count: int
    transition_ms: float
    start_hold_ms: float
    between_hold_ms: float
    end_hold_ms: float
    total_ms: float

    @classmethod
    def build(
        cls,
        step_count: int,
        transition_ms: float,
        start_hold_ms: float = 250,
        between_hold_ms: float = 120,
        end_hold_ms: float = 250,
    ) -> "Timeline":
        """
        Derive the total duration for ``step_count`` steps.

        ``total = start + (n-1) * transition + (n-1) * between + end``; with a
        single step (or none) only the start and end holds remain.
        """
        transitions = max(0, step_count - 1)
        total_ms = start_hold_ms + transitions * transition_ms + transitions * between_hold_ms + end_hold_ms
        return cls(
            step_count=step_count,
            transition_ms=transition_ms,
            start_hold_ms=start_hold_ms,
            between_hold_ms=between_hold_ms,
            end_hold_ms=end_hold_ms,
            total_ms=total_ms,
        )

    def clamp(self, elapsed_ms: float) -> float:
        return max(0.0, min(float(self.total_ms), float(elapsed_ms)))

    def state_at(self, elapsed_ms: float) -> TimelineState:
        """Which step is held, or which pair is being interpolated, at ``elapsed_ms``."""
        if self.step_count <= 1:
            return Holding(0)

        t = self.clamp(elapsed_ms)
        if t < self.start_hold_ms:
            return Holding(0)
        t -= self.start_hold_ms

        for i in range(self.step_count - 1):
            if t <= self.transition_ms:
                progress = 1.0 if self.transition_ms <= 0 else t / self.transition_ms
                return Transitioning(i, i + 1, progress)
            t -= self.transition_ms
            if t <= self.between_hold_ms:
                return Holding(i + 1)
            t -= self.between_hold_ms

        return Holding(self.step_count - 1)

    def frame_count(self, fps: int) -> int:
        """Number of frames an export at ``fps`` produces."""
        return max(1, int(round(self.total_ms * fps / 1000.0)))


class Playhead:
    """
    Live playback position, advanced by whatever host loop drives it.

    ``advance(dt_ms)`` is the only way time moves; it wraps to zero once the
    end of the timeline is reached, so playback repeats.
    """

    def __init__(self, timeline: Timeline):
        self.timeline = timeline
        self.position_ms = 0.0
        self.is_playing = False

    def retime(self, timeline: Timeline) -> None:
        """Swap in a recomputed timeline, keeping the position in range."""
        self.timeline = timeline
        self.position_ms = timeline.clamp(self.position_ms)

    def play(self) -> None:
        self.is_playing = True

    def pause(self) -> None:
        self.is_playing = False

    def toggle(self) -> bool:
        self.is_playing = not self.is_playing
        return self.is_playing

    def reset(self) -> None:
        self.is_playing = False
        self.position_ms = 0.0

    def seek(self, ms: float) -> float:
        self.position_ms = self.timeline.clamp(ms)
        return self.position_ms

    def advance(self, dt_ms: float) -> float:
        if not self.is_playing:
            return self.position_ms
        position = self.position_ms + max(0.0, dt_ms)
        self.position_ms = 0.0 if position >= self.timeline.total_ms else position
        return self.position_ms

    def state(self) -> TimelineState:
        return self.timeline.state_at(self.position_ms)
