from enum import Enum

from ridehub.shared.models.enums import TrackingStatus


class TrackingAction(str, Enum):
    PAUSE = "pause"
    RESUME = "resume"
    STOP = "stop"

    def __str__(self) -> str:
        return self.value


class TrackingStateMachine:
    # (from, action) -> to
    TRANSITIONS = {
        (TrackingStatus.ACTIVE, TrackingAction.PAUSE): TrackingStatus.PAUSED,
        (TrackingStatus.PAUSED, TrackingAction.RESUME): TrackingStatus.ACTIVE,
        (TrackingStatus.ACTIVE, TrackingAction.STOP): TrackingStatus.COMPLETED,
        (TrackingStatus.PAUSED, TrackingAction.STOP): TrackingStatus.COMPLETED,
    }

    @staticmethod
    def can_transition(current_status: str, action: str) -> bool:
        try:
            key = (TrackingStatus(current_status), TrackingAction(action))
        except ValueError:
            return False
        return key in TrackingStateMachine.TRANSITIONS

    @staticmethod
    def next_status(current_status: str, action: str) -> TrackingStatus:
        """Raises KeyError when the transition is not defined."""
        return TrackingStateMachine.TRANSITIONS[(TrackingStatus(current_status), TrackingAction(action))]

    @staticmethod
    def accepts_points(current_status: str) -> bool:
        return current_status == TrackingStatus.ACTIVE
