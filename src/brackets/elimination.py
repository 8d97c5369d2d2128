"""
Single elimination bracket generation and management.
"""
import math
from typing import List, Optional

from .errors import InvalidGenerationInput
from .ids import IdGenerator
from .models import (
    Bracket, Event, Match, Slot, CONSOLATION, MAIN, SINGLE_ELIMINATION,
)


def get_round_name(teams_in_round: int) -> str:
    """Get the name of a round based on number of teams."""
    if teams_in_round == 2:
        return "Final"
    elif teams_in_round == 4:
        return "Semifinal"
    elif teams_in_round == 8:
        return "Quarterfinal"
    else:
        return f"Round of {teams_in_round}"


def calculate_bracket_size(num_players: int) -> int:
    """Calculate the bracket size (next power of 2)."""
    if num_players <= 0:
        return 0
    return 2 ** math.ceil(math.log2(num_players))


def calculate_byes(num_players: int) -> int:
    """Calculate number of byes needed."""
    return calculate_bracket_size(num_players) - num_players


def calculate_rounds(num_players: int) -> int:
    """Number of winners-side rounds for a bracket of this many players."""
    bracket_size = calculate_bracket_size(num_players)
    if bracket_size < 2:
        return 0
    return int(math.log2(bracket_size))


def seed_order(bracket_size: int) -> List[int]:
    """
    Standard seed permutation for a power-of-two bracket.

    Built by recursive halving: each seed s of the half-size order is
    followed by its mirror (bracket_size + 1 - s). Adjacent pairs of the
    result are the first-round matchups, so seeds 1 and 2 can only meet
    in the final and byes (the highest seeds) face the top seeds.

    Args:
        bracket_size: Power of two number of slots

    Returns:
        Permutation of 1..bracket_size in slot order
    """
    if (not isinstance(bracket_size, int) or isinstance(bracket_size, bool)
            or bracket_size < 1 or bracket_size & (bracket_size - 1)):
        raise InvalidGenerationInput(f"Bracket size must be a power of two, got {bracket_size!r}")
    if bracket_size == 1:
        return [1]
    if bracket_size == 2:
        return [1, 2]

    order = []
    for seed in seed_order(bracket_size // 2):
        order.append(seed)
        order.append(bracket_size + 1 - seed)
    return order


def validate_player_count(number_of_players) -> int:
    """Reject anything that is not an integer of at least two."""
    if isinstance(number_of_players, bool) or not isinstance(number_of_players, int):
        raise InvalidGenerationInput(
            f"Number of players must be an integer, got {number_of_players!r}")
    if number_of_players < 2:
        raise InvalidGenerationInput(
            f"At least two players are required, got {number_of_players}")
    return number_of_players


def create_participants(number_of_players: int, new_id: IdGenerator,
                        names: Optional[List[str]] = None) -> List[Slot]:
    """Create participant slots in seed order (index 0 is seed 1)."""
    validate_player_count(number_of_players)
    if names is None:
        names = [f"Player {i}" for i in range(1, number_of_players + 1)]
    if len(names) != number_of_players:
        raise InvalidGenerationInput(
            f"Got {len(names)} names for {number_of_players} players")
    participants = []
    for name in names:
        if not isinstance(name, str) or not name.strip():
            raise InvalidGenerationInput("Participant names must be non-empty strings")
        participants.append(Slot(id=new_id(), name=name.strip()))
    return participants


def new_match(new_id: IdGenerator, round_number: int, match_number: int, players: List[Slot],
              event: Optional[Event] = None, section: Optional[str] = None) -> Match:
    """Create a pending match with the event's default date and venue."""
    return Match(
        id=new_id(),
        round=round_number,
        match_number=match_number,
        players=players,
        section=section,
        date=event.start_date if event else None,
        time=None,
        venue=event.venue if event else None,
    )


def build_first_round_slots(participants: List[Slot]) -> List[Slot]:
    """Lay participants and byes out in seeded slot order."""
    bracket_size = calculate_bracket_size(len(participants))
    slots = []
    for seed in seed_order(bracket_size):
        if seed <= len(participants):
            slots.append(participants[seed - 1].copy())
        else:
            slots.append(Slot.bye())
    return slots


def generate_winners_rounds(participants: List[Slot], new_id: IdGenerator,
                            event: Optional[Event] = None,
                            section: Optional[str] = None) -> List[List[Match]]:
    """
    Build the elimination ladder: a seeded first round followed by rounds of TBD slots.

    Args:
        participants: Participant slots, index 0 is the top seed
        new_id: Id generator for matches
        event: Event supplying default date and venue
        section: Section tag for every generated match

    Returns:
        List of rounds, each a list of matches
    """
    slots = build_first_round_slots(participants)
    rounds = []
    first_round = []
    for i in range(0, len(slots), 2):
        first_round.append(new_match(new_id, 1, i // 2 + 1, [slots[i], slots[i + 1]], event, section))
    rounds.append(first_round)

    matches_in_round = len(first_round)
    round_number = 2
    while matches_in_round > 1:
        matches_in_round = math.ceil(matches_in_round / 2)
        rounds.append([
            new_match(new_id, round_number, m + 1, [Slot.placeholder(), Slot.placeholder()], event, section)
            for m in range(matches_in_round)
        ])
        round_number += 1
    return rounds


def generate_single_elimination(number_of_players: int, new_id: IdGenerator,
                                event: Optional[Event] = None,
                                names: Optional[List[str]] = None,
                                include_third_place: bool = False) -> dict:
    """
    Generate the match tree for a single elimination bracket.

    Returns:
        Sections dict with a single ``main`` entry
    """
    participants = create_participants(number_of_players, new_id, names)
    rounds = generate_winners_rounds(participants, new_id, event)
    if include_third_place and len(rounds) >= 2:
        rounds[-1].append(_consolation_match(rounds, new_id, event))
    return {MAIN: rounds}


def _consolation_match(rounds: List[List[Match]], new_id: IdGenerator,
                       event: Optional[Event] = None) -> Match:
    final_round = rounds[-1]
    players = []
    for index, semifinal in enumerate(rounds[-2][:2]):
        loser = semifinal.loser_slot()
        players.append(loser.advanced() if loser else Slot.placeholder(f"Loser of SF{index + 1}"))
    match = new_match(new_id, final_round[0].round, 2, players, event, CONSOLATION)
    if event is None:
        match.date = final_round[0].date
        match.venue = final_round[0].venue
    return match


def find_consolation_match(bracket: Bracket) -> Optional[Match]:
    rounds = bracket.rounds(MAIN)
    if not rounds:
        return None
    for match in rounds[-1]:
        if match.section == CONSOLATION:
            return match
    return None


def add_consolation_match(bracket: Bracket, new_id: IdGenerator) -> Match:
    """Add a third-place match, filled with semifinal losers already known."""
    if bracket.type != SINGLE_ELIMINATION:
        raise InvalidGenerationInput("Consolation matches only exist in single elimination brackets")
    existing = find_consolation_match(bracket)
    if existing is not None:
        return existing
    rounds = bracket.rounds(MAIN)
    if len(rounds) < 2:
        raise InvalidGenerationInput("A consolation match needs at least two rounds")
    match = _consolation_match(rounds, new_id)
    rounds[-1].append(match)
    return match


def remove_consolation_match(bracket: Bracket) -> bool:
    """Remove the third-place match. Returns False if there was none."""
    match = find_consolation_match(bracket)
    if match is None:
        return False
    bracket.rounds(MAIN)[-1].remove(match)
    return True
