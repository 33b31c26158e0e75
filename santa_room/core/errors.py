# santa_room/core/errors.py


class SantaError(Exception):
    """ドメインエラーの基底。message はそのまま利用者に見せてよい文言。"""

    message = "Something went wrong"

    def __init__(self, message: str | None = None):
        self.message = message or self.message
        super().__init__(self.message)


class NotFound(SantaError):
    message = "Not found"


class RoomNotFound(NotFound):
    message = "Room not found"


class ParticipantNotFound(NotFound):
    message = "Participant not found"


class ExclusionNotFound(NotFound):
    message = "Exclusion not found"


class PhaseViolation(SantaError):
    message = "Action not allowed in the current room phase"


class DuplicateName(SantaError):
    message = "Someone with that name already exists"


class AlreadyClaimed(SantaError):
    message = "This name has already been claimed by another device"


class InsufficientParticipants(SantaError):
    message = "Not enough participants to draw"


class ConstraintUnsatisfiable(SantaError):
    message = "Exclusions are too strict for this group. Remove some and try again"


class NotAuthorized(SantaError):
    message = "Only the room admin can do that"


class InvalidExclusion(SantaError):
    message = "Invalid exclusion"


class CollaboratorUnavailable(SantaError):
    message = "Storage is unavailable. Please retry"


class InvalidName(SantaError):
    message = "Name must not be empty"


class RoomCodeExhausted(SantaError):
    message = "Could not allocate a room code. Please retry"
