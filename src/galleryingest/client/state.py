"""
Per-item upload state machine.

Every queue item holds exactly one of the tagged states below and only ever
changes through ``reduce``.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Uploading:
    progress: int = 0


@dataclass(frozen=True)
class Done:
    asset_id: str


@dataclass(frozen=True)
class Error:
    message: str


@dataclass(frozen=True)
class Cancelled:
    pass


ItemState = Idle | Uploading | Done | Error | Cancelled


@dataclass(frozen=True)
class Start:
    pass


@dataclass(frozen=True)
class Progress:
    percent: int


@dataclass(frozen=True)
class Succeeded:
    asset_id: str


@dataclass(frozen=True)
class Failed:
    message: str


@dataclass(frozen=True)
class Cancel:
    pass


@dataclass(frozen=True)
class Retry:
    pass


ItemEvent = Start | Progress | Succeeded | Failed | Cancel | Retry


class InvalidTransition(ValueError):
    """Raised when an event does not apply to the current state."""

    def __init__(self, state: ItemState, event: ItemEvent) -> None:
        super().__init__(f"{type(event).__name__} is not allowed in state {type(state).__name__}")
        self.state = state
        self.event = event


def reduce(state: ItemState, event: ItemEvent) -> ItemState:
    """
    Apply one event to an item state.

    Allowed transitions:
        Idle -Start-> Uploading(0)
        Idle -Cancel-> Cancelled
        Uploading -Progress-> Uploading (never moves backwards, clamped to 0..100)
        Uploading -Succeeded-> Done
        Uploading -Failed-> Error
        Uploading -Cancel-> Cancelled
        Error | Cancelled -Retry-> Idle

    Raises:
        InvalidTransition: For every other combination
    """
    match state, event:
        case Idle(), Start():
            return Uploading(progress=0)
        case Idle(), Cancel():
            return Cancelled()
        case Uploading(progress=current), Progress(percent=percent):
            return Uploading(progress=max(current, min(100, max(0, percent))))
        case Uploading(), Succeeded(asset_id=asset_id):
            return Done(asset_id=asset_id)
        case Uploading(), Failed(message=message):
            return Error(message=message)
        case Uploading(), Cancel():
            return Cancelled()
        case Error() | Cancelled(), Retry():
            return Idle()

    raise InvalidTransition(state, event)


def is_terminal(state: ItemState) -> bool:
    """Done, Error and Cancelled items are not touched by workers."""
    return isinstance(state, Done | Error | Cancelled)
