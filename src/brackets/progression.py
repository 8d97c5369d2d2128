"""
Match result progression for elimination and round robin brackets.

Completing a match fixes its winner and loser, then copies them into the
matches they feed:
- Single elimination: winner to round r+1, match m // 2, slot m % 2
- Double elimination: winners flow forward in their own ladder, winners
  bracket losers drop into the losers bracket, and both champions meet
  in the grand finals
- Round robin: nothing moves; standings are computed separately

Slots are always copied by value so a later change to one match never
leaks into another.
"""
from collections import deque
from typing import Deque, Dict, List, Optional, Tuple

from .double_elimination import (
    losers_advance_position,
    losers_drop_position,
    losers_slots_fed_by_losers,
    losers_slots_fed_by_winners,
)
from .errors import InvalidResult, MatchNotFound
from .ids import IdGenerator
from .models import (
    Bracket, Match, MatchLocation, Slot,
    COMPLETED, CONSOLATION, DOUBLE_ELIMINATION, GRAND_FINALS, LOSERS, MAIN,
    PENDING, ROUND_ROBIN, SINGLE_ELIMINATION, WINNERS,
)

TOURNAMENT_WINNER = 'tournament_winner'
THIRD_PLACE = 'third_place'


class SlotAction:
    """The value a slot held before a transition overwrote it."""

    def __init__(self, location: MatchLocation, slot_index: int, previous: Slot):
        self.location = location
        self.slot_index = slot_index
        self.previous = previous

    def to_dict(self) -> dict:
        return {
            'section': self.location.section,
            'round_index': self.location.round_index,
            'match_index': self.location.match_index,
            'slot_index': self.slot_index,
            'previous': self.previous.to_dict(),
        }

    def __repr__(self):
        return f"SlotAction(location={self.location}, slot_index={self.slot_index}, previous={self.previous})"


class ActionLog:
    """
    Log of slot actions, one entry per transition, kept per bracket.

    With ``max_entries`` set, each bracket keeps only its most recent
    entries and older ones are dropped.
    """

    def __init__(self, max_entries: Optional[int] = None):
        self.max_entries = max_entries
        self._entries: Dict[str, Deque[List[SlotAction]]] = {}

    def record(self, bracket_id: str, actions: List[SlotAction]) -> None:
        if not actions:
            return
        if bracket_id not in self._entries:
            self._entries[bracket_id] = deque(maxlen=self.max_entries)
        self._entries[bracket_id].append(list(actions))

    def entries(self, bracket_id: str) -> List[List[SlotAction]]:
        return list(self._entries.get(bracket_id, []))

    def pop(self, bracket_id: str) -> Optional[List[SlotAction]]:
        entries = self._entries.get(bracket_id)
        if not entries:
            return None
        return entries.pop()

    def clear(self, bracket_id: str) -> None:
        self._entries.pop(bracket_id, None)


def restore_slots(bracket: Bracket, actions: List[SlotAction]) -> None:
    """Put back the slot values recorded in ``actions``, newest first.

    Only slot placements are restored; match statuses and winners are not.
    """
    for action in reversed(actions):
        bracket.match_at(action.location).players[action.slot_index] = action.previous.copy()


class ProgressionResult:
    """Outcome of completing one match."""

    def __init__(self, match: Match, winner: Optional[Slot], loser: Optional[Slot],
                 signal: Optional[str], actions: List[SlotAction]):
        self.match = match
        self.winner = winner
        self.loser = loser
        self.signal = signal
        self.actions = actions

    def to_dict(self) -> dict:
        return {
            'match': self.match.to_dict(),
            'winner': self.winner.to_dict() if self.winner else None,
            'loser': self.loser.to_dict() if self.loser else None,
            'signal': self.signal,
        }

    def __repr__(self):
        return f"ProgressionResult(match={self.match.id}, signal={self.signal})"


def locate_match(bracket: Bracket, match_id: str) -> MatchLocation:
    """Find where a match sits in the bracket tree."""
    for location, match in bracket.iter_matches():
        if match.id == match_id:
            return location
    raise MatchNotFound(f"Match {match_id} not found in bracket {bracket.id}")


def _valid_score(score) -> bool:
    return isinstance(score, int) and not isinstance(score, bool) and score >= 0


def _has_consolation(bracket: Bracket) -> bool:
    rounds = bracket.rounds(MAIN)
    return bool(rounds) and any(match.section == CONSOLATION for match in rounds[-1])


def _destinations(bracket: Bracket, location: MatchLocation,
                  match: Match) -> Tuple[Optional[tuple], Optional[tuple], Optional[str]]:
    """
    Work out where the winner and loser of a match go.

    Returns:
        Tuple of (winner_target, loser_target, signal) where each target is
        (MatchLocation, slot_index) or None
    """
    section, r, m = location
    if bracket.type == ROUND_ROBIN:
        return None, None, None

    if bracket.type == SINGLE_ELIMINATION:
        rounds = bracket.rounds(MAIN)
        if match.section == CONSOLATION:
            return None, None, THIRD_PLACE
        if r == len(rounds) - 1:
            return None, None, TOURNAMENT_WINNER
        winner_target = (MatchLocation(MAIN, r + 1, m // 2), m % 2)
        loser_target = None
        if r == len(rounds) - 2 and _has_consolation(bracket):
            consolation_index = next(
                i for i, candidate in enumerate(rounds[-1]) if candidate.section == CONSOLATION)
            loser_target = (MatchLocation(MAIN, r + 1, consolation_index), m % 2)
        return winner_target, loser_target, None

    winners = bracket.rounds(WINNERS)
    losers = bracket.rounds(LOSERS)
    grand_final = MatchLocation(GRAND_FINALS, 0, 0)

    if section == GRAND_FINALS:
        return None, None, TOURNAMENT_WINNER

    if section == WINNERS:
        if r == len(winners) - 1:
            winner_target = (grand_final, 0)
        else:
            winner_target = (MatchLocation(WINNERS, r + 1, m // 2), m % 2)
        if not losers:
            loser_target = (grand_final, 1)
        else:
            lr, lm, slot = losers_drop_position(r, m, len(winners[r]))
            loser_target = (MatchLocation(LOSERS, lr, lm), slot)
        return winner_target, loser_target, None

    if r == len(losers) - 1:
        return (grand_final, 1), None, None
    lr, lm, slot = losers_advance_position(r, m)
    return (MatchLocation(LOSERS, lr, lm), slot), None, None


def _place(bracket: Bracket, target: tuple, slot: Slot, actions: List[SlotAction]) -> None:
    location, slot_index = target
    match = bracket.match_at(location)
    actions.append(SlotAction(location, slot_index, match.players[slot_index].copy()))
    match.players[slot_index] = slot.advanced()


def _validate_result(bracket: Bracket, match: Match, score_a, score_b) -> None:
    if match.status == COMPLETED:
        raise InvalidResult(f"Match {match.id} is already completed")
    first, second = match.players
    if first.is_placeholder or second.is_placeholder:
        raise InvalidResult(f"Match {match.id} is still waiting on an earlier result")
    if first.is_bye and second.is_bye:
        raise InvalidResult(f"Match {match.id} has no participants")
    if not _valid_score(score_a) or not _valid_score(score_b):
        raise InvalidResult("Scores must be non-negative integers")
    if first.is_bye or second.is_bye:
        return
    if score_a == score_b and not bracket.draws_permitted:
        if bracket.type == ROUND_ROBIN:
            raise InvalidResult("Draws are not allowed in this bracket")
        raise InvalidResult(f"{bracket.type} matches cannot end in a tie")


def complete_match(bracket: Bracket, match_id: str, score_a: int, score_b: int,
                   new_id: IdGenerator, action_log: Optional[ActionLog] = None) -> ProgressionResult:
    """
    Record a result and route the players onward.

    Everything is validated before anything changes, so a rejected result
    leaves the match pending and the rest of the tree untouched. A BYE
    always scores 0 and loses without comparing scores.

    Args:
        bracket: Bracket owning the match
        match_id: Id of the match to complete
        score_a: Score of slot 0
        score_b: Score of slot 1
        new_id: Id generator for BYEs created by round-completion cascades
        action_log: Optional log that receives this transition's slot actions

    Returns:
        ProgressionResult with the winner, loser and any terminal signal
    """
    location = locate_match(bracket, match_id)
    match = bracket.match_at(location)
    _validate_result(bracket, match, score_a, score_b)

    winner_target, loser_target, signal = _destinations(bracket, location, match)
    for target in (winner_target, loser_target):
        if target and bracket.match_at(target[0]).status == COMPLETED:
            raise InvalidResult(
                f"Match {bracket.match_at(target[0]).id} already has a result; reopen it first")

    actions = [SlotAction(location, i, slot.copy()) for i, slot in enumerate(match.players)]
    first, second = match.players
    first.score = 0 if first.is_bye else score_a
    second.score = 0 if second.is_bye else score_b
    first.completed = True
    second.completed = True
    match.status = COMPLETED

    if not first.is_bye and not second.is_bye and first.score == second.score:
        match.is_tie = True
        match.winner_id = None
        match.loser_id = None
        winner = loser = None
        signal = None
    else:
        if first.is_bye:
            winner_index = 1
        elif second.is_bye:
            winner_index = 0
        else:
            winner_index = 0 if first.score > second.score else 1
        winner = match.players[winner_index]
        loser = match.players[1 - winner_index]
        match.is_tie = False
        match.winner_id = winner.id
        match.loser_id = loser.id
        if winner_target:
            _place(bracket, winner_target, winner, actions)
        if loser_target:
            _place(bracket, loser_target, loser, actions)

    if bracket.type == DOUBLE_ELIMINATION:
        apply_cascades(bracket, new_id, actions)

    if action_log is not None:
        action_log.record(bracket.id, actions)
    return ProgressionResult(match, winner, loser, signal, actions)


def reopen_match(bracket: Bracket, match_id: str, action_log: Optional[ActionLog] = None) -> List[SlotAction]:
    """
    Reset a completed match to pending.

    Players already copied into later matches stay there; reopening does
    not undo their advancement.
    """
    location = locate_match(bracket, match_id)
    match = bracket.match_at(location)
    if match.status != COMPLETED:
        raise InvalidResult(f"Match {match.id} is not completed")
    if any(slot.is_bye for slot in match.players):
        raise InvalidResult(f"Match {match.id} was decided by a BYE and cannot be reopened")
    actions = [SlotAction(location, i, slot.copy()) for i, slot in enumerate(match.players)]
    match.status = PENDING
    match.winner_id = None
    match.loser_id = None
    match.is_tie = False
    for slot in match.players:
        slot.completed = slot.is_bye
    if action_log is not None:
        action_log.record(bracket.id, actions)
    return actions


def _round_resolved(round_matches: List[Match]) -> bool:
    return all(match.is_resolved for match in round_matches)


def _convert_to_byes(bracket: Bracket, slots: List[tuple], new_id: IdGenerator,
                     actions: List[SlotAction]) -> bool:
    changed = False
    for lr, lm, slot_index in slots:
        location = MatchLocation(LOSERS, lr, lm)
        match = bracket.match_at(location)
        if match.status == COMPLETED or not match.players[slot_index].is_placeholder:
            continue
        actions.append(SlotAction(location, slot_index, match.players[slot_index].copy()))
        match.players[slot_index] = Slot.bye(new_id())
        changed = True
    return changed


def apply_cascades(bracket: Bracket, new_id: IdGenerator,
                   actions: Optional[List[SlotAction]] = None) -> bool:
    """
    Turn losers bracket slots that can no longer be filled into BYEs.

    Once a winners round is resolved, every losers slot waiting on one of
    its losers is final; the same holds for slots fed by a resolved losers
    round. Slots still waiting on a winners bracket loser are left alone.

    Returns:
        True if any slot was converted
    """
    if bracket.type != DOUBLE_ELIMINATION:
        return False
    if actions is None:
        actions = []
    winners = bracket.rounds(WINNERS)
    losers = bracket.rounds(LOSERS)
    changed = False
    for r, round_matches in enumerate(winners):
        if _round_resolved(round_matches):
            changed |= _convert_to_byes(bracket, losers_slots_fed_by_winners(r, losers), new_id, actions)
    for r, round_matches in enumerate(losers):
        if _round_resolved(round_matches):
            changed |= _convert_to_byes(bracket, losers_slots_fed_by_losers(r, losers), new_id, actions)
    return changed


def _is_walkover(match: Match) -> bool:
    if match.status != PENDING:
        return False
    first, second = match.players
    if first.is_bye == second.is_bye:
        return False
    opponent = second if first.is_bye else first
    return not opponent.is_placeholder


def advance_byes(bracket: Bracket, new_id: IdGenerator,
                 action_log: Optional[ActionLog] = None) -> List[ProgressionResult]:
    """
    Complete every elimination match a player wins by BYE, until nothing changes.

    ``TBD vs BYE`` is skipped since the opponent is not known yet. Running
    this again on its own output changes nothing.

    Returns:
        Results of the matches completed by this pass
    """
    results = []
    if bracket.type == ROUND_ROBIN:
        return results
    changed = True
    while changed:
        cascade_actions = []
        changed = apply_cascades(bracket, new_id, cascade_actions)
        if action_log is not None:
            action_log.record(bracket.id, cascade_actions)
        for _, match in list(bracket.iter_matches()):
            if _is_walkover(match):
                results.append(complete_match(bracket, match.id, 0, 0, new_id, action_log))
                changed = True
    return results
