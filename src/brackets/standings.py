"""
Round robin standings.
"""
from numbers import Real
from typing import Dict, Iterable, List, Optional

from .errors import ConfigurationError, InvalidMatchData
from .models import Bracket, Match, MAIN, ROUND_ROBIN


class Scoring:
    """Points awarded per result."""

    def __init__(self, win=3, draw=1, loss=0):
        self.win = win
        self.draw = draw
        self.loss = loss

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'Scoring':
        """Build scoring from settings, keeping defaults for missing keys."""
        scoring = cls()
        if not data:
            return scoring
        if not isinstance(data, dict):
            raise ConfigurationError(f"Scoring must be a mapping, got {type(data).__name__}")
        for key in ('win', 'draw', 'loss'):
            if key not in data:
                continue
            value = data[key]
            if isinstance(value, str):
                try:
                    value = float(value) if '.' in value else int(value)
                except ValueError:
                    raise ConfigurationError(f"Scoring value for '{key}' is not a number: {value!r}")
            if isinstance(value, bool) or not isinstance(value, Real):
                raise ConfigurationError(f"Scoring value for '{key}' is not a number: {value!r}")
            setattr(scoring, key, value)
        return scoring

    def to_dict(self) -> dict:
        return {'win': self.win, 'draw': self.draw, 'loss': self.loss}

    def __repr__(self):
        return f"Scoring(win={self.win}, draw={self.draw}, loss={self.loss})"


class Standings:
    """Ordered standings rows plus the groups the ordering could not separate."""

    def __init__(self, rows: List[dict], tied_groups: List[List[str]]):
        self.rows = rows
        self.tied_groups = tied_groups

    def to_dict(self) -> dict:
        return {'standings': self.rows, 'tied_groups': self.tied_groups}

    def __repr__(self):
        return f"Standings(rows={len(self.rows)}, tied_groups={self.tied_groups})"


def _as_match(entry) -> Optional[Match]:
    if isinstance(entry, Match):
        return entry
    try:
        return Match.from_dict(entry)
    except InvalidMatchData:
        return None


def _sort_key(row: dict):
    return (-row['points'], -row['wins'], -row['draws'])


def compute_standings(matches: Iterable, scoring: Optional[Scoring] = None) -> Standings:
    """
    Compute round robin standings from the full match list.

    Completed matches are credited as follows:
    - BYE match: the opponent gets a win, nothing is recorded for the BYE
    - Decisive result: win points to the winner, loss points to the loser
    - Tie: draw points to both, only when the match is flagged ``is_tie``

    Rows are ordered by points, then wins, then draws (all descending).
    Rows still level after that keep their first-appearance order and are
    reported in ``tied_groups`` for an external tiebreaker.

    Args:
        matches: Match objects or match dicts; malformed entries are skipped
        scoring: Points per result (defaults to 3/1/0)

    Returns:
        Standings with rows and tied groups
    """
    scoring = scoring or Scoring()
    table: Dict[str, dict] = {}

    def row_for(slot) -> dict:
        key = slot.id if slot.id is not None else slot.name
        if key not in table:
            table[key] = {'id': slot.id, 'name': slot.name, 'wins': 0, 'losses': 0, 'draws': 0, 'played': 0, 'points': 0}
        return table[key]

    for entry in matches:
        match = _as_match(entry)
        if match is None:
            continue
        for slot in match.players:
            if not slot.is_bye and not slot.is_placeholder:
                row_for(slot)
        if not match.is_completed:
            continue

        first, second = match.players
        if first.is_bye or second.is_bye:
            opponent = second if first.is_bye else first
            if opponent.is_bye or opponent.is_placeholder:
                continue
            row = row_for(opponent)
            row['wins'] += 1
            row['played'] += 1
            row['points'] += scoring.win
            continue

        if first.is_placeholder or second.is_placeholder:
            continue

        if match.is_tie:
            for slot in (first, second):
                row = row_for(slot)
                row['draws'] += 1
                row['played'] += 1
                row['points'] += scoring.draw
            continue

        winner = match.winner_slot()
        loser = match.loser_slot()
        if winner is None or loser is None:
            continue
        winner_row = row_for(winner)
        winner_row['wins'] += 1
        winner_row['played'] += 1
        winner_row['points'] += scoring.win
        loser_row = row_for(loser)
        loser_row['losses'] += 1
        loser_row['played'] += 1
        loser_row['points'] += scoring.loss

    rows = sorted(table.values(), key=_sort_key)

    tied_groups = []
    group = []
    for row in rows:
        if group and _sort_key(group[-1]) != _sort_key(row):
            if len(group) > 1:
                tied_groups.append([r['id'] for r in group])
            group = []
        group.append(row)
    if len(group) > 1:
        tied_groups.append([r['id'] for r in group])

    return Standings(rows, tied_groups)


def bracket_standings(bracket: Bracket, scoring: Optional[Scoring] = None) -> Standings:
    matches = [match for round_matches in bracket.rounds(MAIN) for match in round_matches]
    return compute_standings(matches, scoring)


def is_round_robin_concluded(bracket: Bracket) -> bool:
    """True when every round robin match has been completed."""
    if bracket.type != ROUND_ROBIN:
        return False
    matches = [match for round_matches in bracket.rounds(MAIN) for match in round_matches]
    return bool(matches) and all(match.is_completed for match in matches)
