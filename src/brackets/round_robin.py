"""
Round robin schedule generation using the circle method.
"""
from typing import List, Optional

from .elimination import create_participants, new_match
from .ids import IdGenerator
from .models import Event, Match, Slot, COMPLETED, MAIN


def circle_rounds(participants: List[Slot]) -> List[List[tuple]]:
    """
    Pair participants so everyone meets everyone once.

    Position 0 stays fixed; after each round the remaining positions
    rotate right by one. Requires an even number of participants.

    Returns:
        List of rounds, each a list of (slot_a, slot_b) pairs
    """
    order = list(participants)
    n = len(order)
    rounds = []
    for _ in range(n - 1):
        rounds.append([(order[i], order[n - 1 - i]) for i in range(n // 2)])
        rest = order[1:]
        order = [order[0], rest[-1]] + rest[:-1]
    return rounds


def complete_bye_match(match: Match) -> None:
    """A match against the BYE is won by the opponent without playing."""
    for slot in match.players:
        slot.completed = True
        if slot.is_bye:
            slot.score = 0
    opponent = next(slot for slot in match.players if not slot.is_bye)
    bye = next(slot for slot in match.players if slot.is_bye)
    match.status = COMPLETED
    match.winner_id = opponent.id
    match.loser_id = bye.id


def generate_round_robin(number_of_players: int, new_id: IdGenerator,
                         event: Optional[Event] = None,
                         names: Optional[List[str]] = None) -> dict:
    """
    Generate the match tree for a round robin.

    An odd field gets a synthetic BYE participant as the fixed anchor;
    every match against it is completed straight away.

    Returns:
        Sections dict with a single ``main`` entry
    """
    participants = create_participants(number_of_players, new_id, names)
    if len(participants) % 2 == 1:
        participants.insert(0, Slot.bye(new_id()))

    rounds = []
    for round_index, pairs in enumerate(circle_rounds(participants)):
        round_matches = []
        for match_index, (first, second) in enumerate(pairs):
            match = new_match(new_id, round_index + 1, match_index + 1, [first.copy(), second.copy()], event)
            if match.players[0].is_bye or match.players[1].is_bye:
                complete_bye_match(match)
            round_matches.append(match)
        rounds.append(round_matches)
    return {MAIN: rounds}
