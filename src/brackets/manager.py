"""
Bracket-level operations built on the generators and the progression engine.
"""
from datetime import date, datetime
from typing import List, Optional

from .double_elimination import generate_double_elimination
from .elimination import generate_single_elimination, get_round_name
from .errors import InvalidGenerationInput, InvalidMatchData, InvalidSchedule
from .ids import IdGenerator
from .models import (
    Bracket, Event, Match, BRACKET_TYPES, CONSOLATION, DOUBLE_ELIMINATION, GRAND_FINALS,
    LOSERS, MAIN, ROUND_ROBIN, SINGLE_ELIMINATION, WINNERS,
)
from .progression import locate_match
from .round_robin import generate_round_robin
from .standings import Scoring, bracket_standings

STATUS_UPCOMING = 'Upcoming'
STATUS_ONGOING = 'Ongoing'
STATUS_COMPLETED = 'Completed'


def generate_bracket(bracket_type: str, number_of_players: int, new_id: IdGenerator,
                     event: Optional[Event] = None, names: Optional[List[str]] = None,
                     include_third_place: bool = False) -> dict:
    """Build the initial match tree for any bracket type."""
    if bracket_type == SINGLE_ELIMINATION:
        return generate_single_elimination(number_of_players, new_id, event, names, include_third_place)
    if bracket_type == DOUBLE_ELIMINATION:
        return generate_double_elimination(number_of_players, new_id, event, names)
    if bracket_type == ROUND_ROBIN:
        return generate_round_robin(number_of_players, new_id, event, names)
    raise InvalidGenerationInput(
        f"Unknown bracket type {bracket_type!r}; expected one of {', '.join(BRACKET_TYPES)}")


def create_bracket(name: str, bracket_type: str, number_of_players: int, new_id: IdGenerator,
                   event: Optional[Event] = None, names: Optional[List[str]] = None,
                   include_third_place: bool = False, allow_draws: Optional[bool] = None) -> Bracket:
    """Create a bracket together with its full initial match tree."""
    if not isinstance(name, str) or not name.strip():
        raise InvalidGenerationInput("Bracket name is required")
    sections = generate_bracket(bracket_type, number_of_players, new_id, event, names, include_third_place)
    return Bracket(
        id=new_id(),
        name=name.strip(),
        type=bracket_type,
        event_id=event.id if event else None,
        allow_draws=allow_draws,
        sections=sections,
    )


def all_matches(bracket: Bracket, status: Optional[str] = None) -> List[Match]:
    """Every match in the bracket, optionally filtered by status, ordered by round then number."""
    matches = [match for _, match in bracket.iter_matches()]
    if status:
        matches = [match for match in matches if match.status == status]
    return sorted(matches, key=lambda match: (match.round, match.match_number))


def _played(match: Match) -> bool:
    return match.is_completed and not any(slot.is_bye for slot in match.players)


def _first_round(bracket: Bracket) -> List[Match]:
    section = WINNERS if bracket.type == DOUBLE_ELIMINATION else MAIN
    rounds = bracket.rounds(section)
    if not rounds:
        return []
    return [match for match in rounds[0] if match.section != CONSOLATION]


def bracket_summary(bracket: Bracket, scoring: Optional[Scoring] = None) -> dict:
    """
    Overview of a bracket for listings.

    Returns:
        Dict with status, participants, rounds, round_names and winner
    """
    matches = [match for _, match in bracket.iter_matches()]
    summary = {'status': STATUS_UPCOMING, 'participants': 0, 'rounds': 0, 'round_names': [], 'winner': None}
    if not matches:
        return summary

    if all(match.is_resolved for match in matches):
        summary['status'] = STATUS_COMPLETED
    elif any(_played(match) for match in matches) or any(
            slot.score > 0 for match in matches for slot in match.players):
        summary['status'] = STATUS_ONGOING

    source = matches if bracket.type == ROUND_ROBIN else _first_round(bracket)
    participants = {slot.id for match in source for slot in match.players if slot.is_participant}
    summary['participants'] = len(participants)

    if bracket.type == DOUBLE_ELIMINATION:
        summary['rounds'] = len(bracket.rounds(WINNERS)) + len(bracket.rounds(LOSERS))
    else:
        summary['rounds'] = len(bracket.rounds(MAIN))

    if bracket.type == SINGLE_ELIMINATION:
        main = bracket.rounds(MAIN)
        summary['round_names'] = [get_round_name(2 * len([m for m in r if m.section != CONSOLATION]))
                                  for r in main]

    if summary['status'] == STATUS_COMPLETED:
        summary['winner'] = _winner_name(bracket, scoring)
    return summary


def _winner_name(bracket: Bracket, scoring: Optional[Scoring]) -> Optional[str]:
    if bracket.type == ROUND_ROBIN:
        rows = bracket_standings(bracket, scoring).rows
        return rows[0]['name'] if rows else None
    section = GRAND_FINALS if bracket.type == DOUBLE_ELIMINATION else MAIN
    rounds = bracket.rounds(section)
    if not rounds:
        return None
    winner = rounds[-1][0].winner_slot()
    return winner.name if winner else None


def rename_participant(bracket: Bracket, participant_id: str, new_name: str) -> int:
    """Rename a participant everywhere it appears. Returns the number of slots changed."""
    if not isinstance(new_name, str) or not new_name.strip():
        raise InvalidMatchData("Participant name cannot be empty")
    renamed = 0
    for _, match in bracket.iter_matches():
        for slot in match.players:
            if slot.is_participant and slot.id == participant_id:
                slot.name = new_name.strip()
                renamed += 1
    return renamed


def _parse_date(value) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.strptime(value[:10], '%Y-%m-%d').date()
        except ValueError:
            return None
    return None


def _parse_time(value, default: str) -> Optional[datetime]:
    text = value if value else default
    for fmt in ('%H:%M', '%H:%M:%S'):
        try:
            return datetime.strptime(str(text), fmt)
        except ValueError:
            continue
    return None


def _combine(day: date, time_value, default: str) -> Optional[datetime]:
    parsed = _parse_time(time_value, default)
    if parsed is None:
        return None
    return datetime.combine(day, parsed.time())


def validate_match_schedule(event: Optional[Event], match_date, match_time=None) -> None:
    """
    Check that a match date (and time, when given) falls inside the event window.

    Raises:
        InvalidSchedule: when the date is unreadable or outside the event
    """
    if event is None:
        return
    day = _parse_date(match_date)
    if day is None:
        raise InvalidSchedule(f"Invalid match date: {match_date!r}")
    start = _parse_date(event.start_date)
    end = _parse_date(event.end_date or event.start_date)
    if start is None or end is None:
        return
    if day < start or day > end:
        raise InvalidSchedule(
            f"Match date ({day.isoformat()}) must be within the event range "
            f"({start.isoformat()} - {end.isoformat()})")
    if not match_time:
        return
    moment = _combine(day, match_time, '00:00')
    if moment is None:
        raise InvalidSchedule(f"Invalid match time: {match_time!r}")
    event_start = _combine(start, event.start_time, '00:00')
    event_end = _combine(end, event.end_time or event.start_time, '23:59')
    if event_start and moment < event_start:
        raise InvalidSchedule(
            f"Match time must be on/after event start ({start.isoformat()} {event.start_time or '00:00'})")
    if event_end and moment > event_end:
        raise InvalidSchedule(
            f"Match time must be on/before event end ({end.isoformat()} {event.end_time or '23:59'})")


def update_match_details(bracket: Bracket, match_id: str, event: Optional[Event] = None,
                         match_date=None, match_time=None, venue: Optional[str] = None) -> Match:
    """Reschedule a match; the new date and time are checked against the event."""
    match = bracket.match_at(locate_match(bracket, match_id))
    new_date = match_date if match_date is not None else match.date
    new_time = match_time if match_time is not None else match.time
    validate_match_schedule(event, new_date, new_time)
    match.date = new_date.isoformat() if isinstance(new_date, date) else new_date
    match.time = new_time or None
    if venue is not None:
        match.venue = venue
    return match


def set_allow_draws(bracket: Bracket, allow: bool) -> None:
    if bracket.type != ROUND_ROBIN:
        raise InvalidMatchData("Draws can only be allowed in round robin brackets")
    bracket.allow_draws = bool(allow)


def set_tiebreakers(bracket: Bracket, data) -> None:
    """Store tiebreaker data as-is; the engine never interprets it."""
    bracket.tiebreaker_data = data
