"""
Wizard state machine.

`transition(state, event)` is pure: it returns the next state plus a list of
effects for the caller to execute (remote removal, compositing, releasing
artifacts). Results of asynchronous effects come back as events stamped with
the sequence number of the request that produced them; a result whose number
no longer matches the state is stale and only gets its artifact released.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import List, Literal, Optional, Tuple, Union

from .composite import color_to_hex
from .config import DEFAULT_BACKGROUND_COLOR

Step = Literal["upload", "crop", "background", "color", "download"]
STEPS: Tuple[Step, ...] = ("upload", "crop", "background", "color", "download")

RemovalStatus = Literal["idle", "pending", "succeeded", "failed"]


class InvalidTransition(ValueError):
    pass


@dataclass(frozen=True)
class WorkflowState:
    step: Step = "upload"
    uploaded: Optional[int] = None
    cropped: Optional[int] = None
    processed: Optional[int] = None
    composite: Optional[int] = None
    background_color: str = DEFAULT_BACKGROUND_COLOR
    background_removed: bool = False
    removal: RemovalStatus = "idle"
    removal_error: Optional[str] = None
    removal_seq: int = 0
    composite_seq: int = 0
    composite_pending: bool = False

    @property
    def step_index(self) -> int:
        return STEPS.index(self.step)

    @property
    def foreground(self) -> Optional[int]:
        """Unflattened image that background colors are composited from."""
        return self.processed if self.background_removed else self.cropped

    @property
    def final(self) -> Optional[int]:
        return self.composite if self.background_removed else self.cropped

    def owned_handles(self) -> List[int]:
        return [h for h in (self.uploaded, self.cropped, self.processed, self.composite) if h is not None]


# --- Events ---


@dataclass(frozen=True)
class ImageUploaded:
    handle: int


@dataclass(frozen=True)
class CropConfirmed:
    handle: int


@dataclass(frozen=True)
class RemovalRequested:
    pass


@dataclass(frozen=True)
class RemovalSucceeded:
    seq: int
    handle: int


@dataclass(frozen=True)
class RemovalFailed:
    seq: int
    reason: str


@dataclass(frozen=True)
class RemovalSkipped:
    pass


@dataclass(frozen=True)
class ColorSelected:
    color: str


@dataclass(frozen=True)
class CompositeFinished:
    seq: int
    handle: int


@dataclass(frozen=True)
class CompositeFailed:
    seq: int
    reason: str


@dataclass(frozen=True)
class ColorConfirmed:
    pass


@dataclass(frozen=True)
class StepSelected:
    step: Step


@dataclass(frozen=True)
class BackRequested:
    pass


@dataclass(frozen=True)
class ResetRequested:
    pass


Event = Union[
    ImageUploaded,
    CropConfirmed,
    RemovalRequested,
    RemovalSucceeded,
    RemovalFailed,
    RemovalSkipped,
    ColorSelected,
    CompositeFinished,
    CompositeFailed,
    ColorConfirmed,
    StepSelected,
    BackRequested,
    ResetRequested,
]


# --- Effects ---


@dataclass(frozen=True)
class RemoveBackground:
    seq: int
    source: int


@dataclass(frozen=True)
class CompositeColor:
    seq: int
    foreground: int
    color: str


@dataclass(frozen=True)
class Release:
    handle: int


Effect = Union[RemoveBackground, CompositeColor, Release]


def _releases(*handles: Optional[int]) -> List[Effect]:
    return [Release(h) for h in handles if h is not None]


def _require_step(state: WorkflowState, *steps: Step) -> None:
    if state.step not in steps:
        raise InvalidTransition(f"Not allowed in step {state.step!r} (expected {', '.join(steps)})")


def _request_composite(state: WorkflowState) -> Tuple[WorkflowState, List[Effect]]:
    seq = state.composite_seq + 1
    nxt = replace(state, composite_seq=seq, composite_pending=True)
    return nxt, [CompositeColor(seq=seq, foreground=state.processed, color=state.background_color)]


def transition(state: WorkflowState, event: Event) -> Tuple[WorkflowState, List[Effect]]:
    if isinstance(event, ImageUploaded):
        nxt = WorkflowState(
            step="crop",
            uploaded=event.handle,
            removal_seq=state.removal_seq + 1,
            composite_seq=state.composite_seq + 1,
        )
        return nxt, _releases(*state.owned_handles())

    if isinstance(event, CropConfirmed):
        _require_step(state, "crop")
        nxt = replace(
            state,
            step="background",
            cropped=event.handle,
            processed=None,
            composite=None,
            background_removed=False,
            removal="idle",
            removal_error=None,
            removal_seq=state.removal_seq + 1,
            composite_seq=state.composite_seq + 1,
            composite_pending=False,
        )
        return nxt, _releases(state.cropped, state.processed, state.composite)

    if isinstance(event, RemovalRequested):
        _require_step(state, "background")
        if state.removal == "pending":
            raise InvalidTransition("Background removal already in progress")
        seq = state.removal_seq + 1
        nxt = replace(state, removal="pending", removal_error=None, removal_seq=seq)
        return nxt, [RemoveBackground(seq=seq, source=state.cropped)]

    if isinstance(event, RemovalSucceeded):
        if event.seq != state.removal_seq or state.removal != "pending":
            return state, _releases(event.handle)
        nxt = replace(
            state,
            step="color",
            processed=event.handle,
            composite=None,
            background_removed=True,
            removal="succeeded",
            removal_error=None,
        )
        nxt, effects = _request_composite(nxt)
        return nxt, _releases(state.processed, state.composite) + effects

    if isinstance(event, RemovalFailed):
        if event.seq != state.removal_seq or state.removal != "pending":
            return state, []
        return replace(state, removal="failed", removal_error=event.reason), []

    if isinstance(event, RemovalSkipped):
        _require_step(state, "background")
        nxt = replace(
            state,
            step="color",
            processed=None,
            composite=None,
            background_removed=False,
            removal="idle" if state.removal == "pending" else state.removal,
            removal_seq=state.removal_seq + 1,
            composite_seq=state.composite_seq + 1,
            composite_pending=False,
        )
        return nxt, _releases(state.processed, state.composite)

    if isinstance(event, ColorSelected):
        _require_step(state, "color")
        nxt = replace(state, background_color=color_to_hex(event.color))
        if not nxt.background_removed:
            return nxt, []
        return _request_composite(nxt)

    if isinstance(event, CompositeFinished):
        if event.seq != state.composite_seq or not state.composite_pending:
            return state, _releases(event.handle)
        nxt = replace(state, composite=event.handle, composite_pending=False)
        return nxt, _releases(state.composite)

    if isinstance(event, CompositeFailed):
        if event.seq != state.composite_seq or not state.composite_pending:
            return state, []
        return replace(state, composite_pending=False), []

    if isinstance(event, ColorConfirmed):
        _require_step(state, "color")
        if state.background_removed and (state.composite_pending or state.composite is None):
            raise InvalidTransition("Background color is still being applied")
        return replace(state, step="download"), []

    if isinstance(event, StepSelected):
        if event.step not in STEPS:
            raise InvalidTransition(f"Unknown step {event.step!r}")
        if STEPS.index(event.step) > state.step_index:
            raise InvalidTransition(f"Cannot jump ahead to {event.step!r} from {state.step!r}")
        return replace(state, step=event.step), []

    if isinstance(event, BackRequested):
        if state.step_index == 0:
            return state, []
        return replace(state, step=STEPS[state.step_index - 1]), []

    if isinstance(event, ResetRequested):
        nxt = WorkflowState(removal_seq=state.removal_seq + 1, composite_seq=state.composite_seq + 1)
        return nxt, _releases(*state.owned_handles())

    raise InvalidTransition(f"Unknown event {event!r}")
