"""
Entity model for brackets: events, brackets, matches and player slots.
"""
from collections import namedtuple
from typing import Dict, Iterator, List, Optional, Tuple

from .errors import InvalidMatchData

SINGLE_ELIMINATION = 'Single Elimination'
DOUBLE_ELIMINATION = 'Double Elimination'
ROUND_ROBIN = 'Round Robin'
BRACKET_TYPES = (SINGLE_ELIMINATION, DOUBLE_ELIMINATION, ROUND_ROBIN)

PENDING = 'pending'
COMPLETED = 'completed'
MATCH_STATUSES = (PENDING, COMPLETED)

MAIN = 'main'
WINNERS = 'winners'
LOSERS = 'losers'
GRAND_FINALS = 'grand_finals'
CONSOLATION = 'consolation'
DOUBLE_ELIMINATION_SECTIONS = (WINNERS, LOSERS, GRAND_FINALS)

TBD = 'TBD'
BYE = 'BYE'

# Keys the web frontend has historically sent
_CAMEL_KEYS = {
    'matchNumber': 'match_number',
    'winnerId': 'winner_id',
    'loserId': 'loser_id',
    'isTie': 'is_tie',
}
SECTION_ALIASES = {'grandFinals': GRAND_FINALS}

MatchLocation = namedtuple('MatchLocation', ['section', 'round_index', 'match_index'])


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _id_text(value):
    """Integer ids from older stores become strings; anything else is left alone."""
    return str(value) if _is_int(value) else value


class Slot:
    """A player placement within a match."""

    def __init__(self, id: Optional[str] = None, name: str = TBD, score: int = 0, completed: bool = False):
        self.id = id
        self.name = name
        self.score = score
        self.completed = completed

    @classmethod
    def bye(cls, id: Optional[str] = None) -> 'Slot':
        return cls(id=id, name=BYE, score=0, completed=True)

    @classmethod
    def placeholder(cls, name: str = TBD) -> 'Slot':
        return cls(id=None, name=name)

    @property
    def is_bye(self) -> bool:
        return self.name == BYE

    @property
    def is_placeholder(self) -> bool:
        return self.id is None and not self.is_bye

    @property
    def is_participant(self) -> bool:
        return self.id is not None and not self.is_bye

    def copy(self) -> 'Slot':
        return Slot(self.id, self.name, self.score, self.completed)

    def advanced(self) -> 'Slot':
        """Copy of this slot as it enters a later match: score reset, not yet played."""
        return Slot(self.id, self.name, 0, self.is_bye)

    def to_dict(self) -> dict:
        return {'id': self.id, 'name': self.name, 'score': self.score, 'completed': self.completed}

    @classmethod
    def from_dict(cls, data: dict) -> 'Slot':
        if not isinstance(data, dict):
            raise InvalidMatchData(f"Slot must be a mapping, got {type(data).__name__}")
        slot_id = data.get('id')
        if _is_int(slot_id):
            slot_id = str(slot_id)
        elif slot_id is not None and not isinstance(slot_id, str):
            raise InvalidMatchData(f"Slot id must be a string, got {type(slot_id).__name__}")
        name = data.get('name')
        if not isinstance(name, str) or not name:
            name = TBD
        score = data.get('score', 0)
        if score is None:
            score = 0
        if not _is_int(score) or score < 0:
            raise InvalidMatchData(f"Slot score must be a non-negative integer, got {score!r}")
        completed = bool(data.get('completed', False))
        if name == BYE:
            completed = True
        return cls(slot_id, name, score, completed)

    def __eq__(self, other):
        if not isinstance(other, Slot):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self):
        return f"Slot(id={self.id}, name={self.name}, score={self.score}, completed={self.completed})"


class Match:
    """A single pairing of two slots."""

    def __init__(self, id: str, round: int, match_number: int, players: List[Slot],
                 section: Optional[str] = None, status: str = PENDING,
                 winner_id: Optional[str] = None, loser_id: Optional[str] = None,
                 is_tie: bool = False, date: Optional[str] = None,
                 time: Optional[str] = None, venue: Optional[str] = None):
        self.id = id
        self.round = round
        self.match_number = match_number
        self.players = players
        self.section = section
        self.status = status
        self.winner_id = winner_id
        self.loser_id = loser_id
        self.is_tie = is_tie
        self.date = date
        self.time = time
        self.venue = venue

    @property
    def is_completed(self) -> bool:
        return self.status == COMPLETED

    @property
    def is_dead(self) -> bool:
        """Both slots are BYEs; nobody will ever play it."""
        return all(slot.is_bye for slot in self.players)

    @property
    def is_resolved(self) -> bool:
        return self.is_completed or self.is_dead

    def slot_for(self, participant_id: str) -> Optional[Slot]:
        for slot in self.players:
            if slot.id is not None and slot.id == participant_id:
                return slot
        return None

    def winner_index(self) -> Optional[int]:
        if not self.is_completed or self.is_tie or self.winner_id is None:
            return None
        for index, slot in enumerate(self.players):
            if slot.id == self.winner_id:
                return index
        return None

    def winner_slot(self) -> Optional[Slot]:
        index = self.winner_index()
        return None if index is None else self.players[index]

    def loser_slot(self) -> Optional[Slot]:
        index = self.winner_index()
        return None if index is None else self.players[1 - index]

    def to_dict(self) -> dict:
        data = {
            'id': self.id,
            'round': self.round,
            'match_number': self.match_number,
            'players': [slot.to_dict() for slot in self.players],
            'status': self.status,
            'winner_id': self.winner_id,
            'loser_id': self.loser_id,
            'is_tie': self.is_tie,
            'date': self.date,
            'time': self.time,
            'venue': self.venue,
        }
        if self.section:
            data['section'] = self.section
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Match':
        """Build a match from its wire form, raising InvalidMatchData when it is unusable."""
        if not isinstance(data, dict):
            raise InvalidMatchData(f"Match must be a mapping, got {type(data).__name__}")
        data = {_CAMEL_KEYS.get(key, key): value for key, value in data.items()}

        match_id = data.get('id')
        if _is_int(match_id):
            match_id = str(match_id)
        if not isinstance(match_id, str) or not match_id:
            raise InvalidMatchData("Match is missing an id")

        players = data.get('players')
        if not isinstance(players, list) or len(players) != 2:
            raise InvalidMatchData(f"Match {match_id} must have exactly two players")
        slots = [Slot.from_dict(player) for player in players]

        round_number = data.get('round') or 1
        match_number = data.get('match_number') or 1
        if not _is_int(round_number) or round_number < 1:
            raise InvalidMatchData(f"Match {match_id} has an invalid round: {round_number!r}")
        if not _is_int(match_number) or match_number < 1:
            raise InvalidMatchData(f"Match {match_id} has an invalid match number: {match_number!r}")

        status = data.get('status') or PENDING
        if status not in MATCH_STATUSES:
            raise InvalidMatchData(f"Match {match_id} has an unknown status: {status!r}")

        section = data.get('section')
        section = SECTION_ALIASES.get(section, section)

        return cls(
            id=match_id,
            round=round_number,
            match_number=match_number,
            players=slots,
            section=section,
            status=status,
            winner_id=_id_text(data.get('winner_id')),
            loser_id=_id_text(data.get('loser_id')),
            is_tie=bool(data.get('is_tie', False)),
            date=data.get('date'),
            time=data.get('time'),
            venue=data.get('venue'),
        )

    def __repr__(self):
        return (f"Match(id={self.id}, round={self.round}, match_number={self.match_number}, "
                f"section={self.section}, status={self.status}, players={self.players})")


class Event:
    """The event a bracket belongs to; supplies default scheduling fields."""

    def __init__(self, id=None, start_date=None, end_date=None, start_time=None, end_time=None, venue=None):
        self.id = id
        self.start_date = start_date
        self.end_date = end_date
        self.start_time = start_time
        self.end_time = end_time
        self.venue = venue

    @classmethod
    def from_dict(cls, data: dict) -> 'Event':
        def text(value):
            # YAML loads unquoted dates as date objects
            return value.isoformat() if hasattr(value, 'isoformat') else value

        def clock(value):
            # and unquoted times like 10:30 as base-60 integers
            if _is_int(value):
                return f"{value // 60:02d}:{value % 60:02d}"
            return value

        return cls(
            id=data.get('id'),
            start_date=text(data.get('start_date', data.get('startDate'))),
            end_date=text(data.get('end_date', data.get('endDate'))),
            start_time=clock(data.get('start_time', data.get('startTime'))),
            end_time=clock(data.get('end_time', data.get('endTime'))),
            venue=data.get('venue'),
        )

    def __repr__(self):
        return f"Event(id={self.id}, start_date={self.start_date}, end_date={self.end_date}, venue={self.venue})"


class Bracket:
    """A bracket and the match tree it owns.

    ``sections`` maps a section key to its rounds. Single elimination and
    round robin use ``main``; double elimination uses ``winners``,
    ``losers`` and ``grand_finals``.
    """

    def __init__(self, id: str, name: str, type: str, event_id: Optional[str] = None,
                 allow_draws: Optional[bool] = None, tiebreaker_data=None,
                 sections: Optional[Dict[str, List[List[Match]]]] = None):
        self.id = id
        self.name = name
        self.type = type
        self.event_id = event_id
        if allow_draws is None:
            allow_draws = type == ROUND_ROBIN
        self.allow_draws = allow_draws
        self.tiebreaker_data = tiebreaker_data
        self.sections = sections if sections is not None else {}

    @property
    def draws_permitted(self) -> bool:
        return self.type == ROUND_ROBIN and bool(self.allow_draws)

    def rounds(self, section: str = MAIN) -> List[List[Match]]:
        return self.sections.get(section, [])

    def match_at(self, location: MatchLocation) -> Match:
        return self.sections[location.section][location.round_index][location.match_index]

    def iter_matches(self) -> Iterator[Tuple[MatchLocation, Match]]:
        for section, rounds in self.sections.items():
            for round_index, round_matches in enumerate(rounds):
                for match_index, match in enumerate(round_matches):
                    yield MatchLocation(section, round_index, match_index), match

    def to_record(self) -> dict:
        """Bracket fields without the match tree."""
        return {
            'id': self.id,
            'name': self.name,
            'type': self.type,
            'event_id': self.event_id,
            'allow_draws': self.allow_draws,
            'tiebreaker_data': self.tiebreaker_data,
        }

    @classmethod
    def from_record(cls, record: dict, sections=None) -> 'Bracket':
        return cls(
            id=record.get('id'),
            name=record.get('name', ''),
            type=record.get('type'),
            event_id=record.get('event_id'),
            allow_draws=record.get('allow_draws'),
            tiebreaker_data=record.get('tiebreaker_data'),
            sections=sections,
        )

    def __repr__(self):
        return f"Bracket(id={self.id}, name={self.name}, type={self.type}, event_id={self.event_id})"
