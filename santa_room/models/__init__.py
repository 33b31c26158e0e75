from .room import Room, Participant
from .draw import Exclusion, Assignment

__all__ = [
    "Room",
    "Participant",
    "Exclusion",
    "Assignment",
]
