"""
Double elimination bracket generation.

A double elimination bracket has three parts:
- Winners bracket: seeded exactly like single elimination
- Losers bracket: players dropping out of the winners bracket get a second life
- Grand finals: winners champion (slot 0) against losers champion (slot 1)
"""
from typing import List, Optional, Tuple

from .elimination import (
    create_participants,
    generate_winners_rounds,
    new_match,
)
from .ids import IdGenerator
from .models import Event, Match, Slot, GRAND_FINALS, LOSERS, WINNERS


def calculate_losers_rounds(winners_rounds: int) -> int:
    """Losers bracket round count for a winners bracket of this depth."""
    return max(0, 2 * (winners_rounds - 1))


def losers_round_size(bracket_size: int, losers_round_index: int) -> int:
    """Number of matches in losers round ``losers_round_index`` (0-based)."""
    return bracket_size // 2 ** (losers_round_index // 2 + 2)


def losers_drop_position(winners_round_index: int, match_index: int,
                         matches_in_round: int) -> Tuple[int, int, int]:
    """
    Where the loser of a winners match lands in the losers bracket.

    First-round losers pair up odd/even: match 2k fills slot 0 and 2k+1
    fills slot 1 of losers match k. Later rounds drop into losers round
    2r-1, slot 1, crossing within each pair (2k -> 2k+1, 2k+1 -> 2k) so
    players who just met are kept apart.

    Returns:
        Tuple of (losers_round_index, match_index, slot_index)
    """
    if winners_round_index == 0:
        return 0, match_index // 2, match_index % 2
    losers_round_index = 2 * winners_round_index - 1
    if matches_in_round == 1:
        return losers_round_index, 0, 1
    return losers_round_index, match_index ^ 1, 1


def losers_advance_position(losers_round_index: int, match_index: int) -> Tuple[int, int, int]:
    """Where the winner of a losers match goes next: (round, match, slot)."""
    if losers_round_index % 2 == 0:
        return losers_round_index + 1, match_index, 0
    return losers_round_index + 1, match_index // 2, match_index % 2


def losers_slots_fed_by_winners(winners_round_index: int, losers_rounds: List[List[Match]]) -> List[Tuple[int, int, int]]:
    """Losers slots that only a loser from this winners round can fill."""
    if not losers_rounds:
        return []
    if winners_round_index == 0:
        return [(0, m, s) for m in range(len(losers_rounds[0])) for s in (0, 1)]
    target = 2 * winners_round_index - 1
    if target >= len(losers_rounds):
        return []
    return [(target, m, 1) for m in range(len(losers_rounds[target]))]


def losers_slots_fed_by_losers(losers_round_index: int, losers_rounds: List[List[Match]]) -> List[Tuple[int, int, int]]:
    """Slots of the next losers round filled by winners of this one."""
    target = losers_round_index + 1
    if target >= len(losers_rounds):
        return []
    slots = (0,) if target % 2 == 1 else (0, 1)
    return [(target, m, s) for m in range(len(losers_rounds[target])) for s in slots]


def generate_double_elimination(number_of_players: int, new_id: IdGenerator,
                                event: Optional[Event] = None,
                                names: Optional[List[str]] = None) -> dict:
    """
    Generate the match tree for a double elimination bracket.

    Losers bracket slots start as TBD and are then labelled with the winners
    game they wait on ("G3 Loser"). A first-round winners match holding a
    BYE never produces a loser, so its landing slot is a BYE from the start.

    Returns:
        Sections dict keyed by winners, losers and grand_finals
    """
    participants = create_participants(number_of_players, new_id, names)
    winners = generate_winners_rounds(participants, new_id, event, WINNERS)
    bracket_size = len(winners[0]) * 2

    losers = []
    for i in range(calculate_losers_rounds(len(winners))):
        losers.append([
            new_match(new_id, i + 1, m + 1, [Slot.placeholder(), Slot.placeholder()], event, LOSERS)
            for m in range(losers_round_size(bracket_size, i))
        ])

    grand_final = new_match(new_id, 1, 1, [Slot.placeholder(), Slot.placeholder()], event, GRAND_FINALS)

    game_number = 0
    for r, round_matches in enumerate(winners):
        for m, match in enumerate(round_matches):
            game_number += 1
            if not losers:
                grand_final.players[1] = Slot.placeholder(f"G{game_number} Loser")
                continue
            lr, lm, slot = losers_drop_position(r, m, len(round_matches))
            if r == 0 and any(player.is_bye for player in match.players):
                losers[lr][lm].players[slot] = Slot.bye()
            else:
                losers[lr][lm].players[slot] = Slot.placeholder(f"G{game_number} Loser")

    return {
        WINNERS: winners,
        LOSERS: losers,
        GRAND_FINALS: [[grand_final]],
    }
