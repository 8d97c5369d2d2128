"""
Exceptions raised by the bracket engine.
"""


class BracketError(Exception):
    """Base exception for all bracket engine errors."""

    pass


class BracketValidationError(BracketError):
    """Raised when caller-supplied input fails ordinary validation."""

    pass


class InvalidGenerationInput(BracketValidationError):
    """Raised when a bracket cannot be generated from the given participants."""

    pass


class InvalidResult(BracketValidationError):
    """Raised when a match result is rejected (ties, bad scores, unresolved slots)."""

    pass


class InvalidMatchData(BracketValidationError):
    """Raised when a match record is structurally invalid."""

    pass


class InvalidSchedule(BracketValidationError):
    """Raised when a match date or time falls outside its event."""

    pass


class ConfigurationError(BracketValidationError):
    """Raised when scoring or settings values cannot be used."""

    pass


class NotFoundError(BracketError):
    """Base exception for lookups that found nothing."""

    pass


class BracketNotFound(NotFoundError):
    """Raised when a bracket id is unknown."""

    pass


class MatchNotFound(NotFoundError):
    """Raised when a match id does not exist in the bracket."""

    pass


class PlayerIdentityError(BracketError):
    """Raised when a slot carries a compound value where a player id belongs.

    Kept apart from validation errors: it points at corrupted stored data
    rather than bad input, so the host reports where it happened.
    """

    def __init__(self, bracket_id, match_id, slot_index, value):
        self.bracket_id = bracket_id
        self.match_id = match_id
        self.slot_index = slot_index
        self.value = value
        super().__init__(
            f"Slot {slot_index} of match {match_id} in bracket {bracket_id} "
            f"has a non-scalar player id: {value!r}"
        )

    def to_dict(self) -> dict:
        return {
            'bracket_id': self.bracket_id,
            'match_id': self.match_id,
            'slot_index': self.slot_index,
        }
