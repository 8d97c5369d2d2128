"""
Conversion between wire shapes of a match tree and the canonical bracket tree.

A stored or submitted match tree arrives in one of three shapes:
- flat: a list of matches
- rounds: a list of rounds, each a list of matches
- sections: a mapping of section name (winners, losers, grand_finals, ...)
  to a flat list or a list of rounds

Everything is normalized on ingestion, so the rest of the engine only
ever sees ``Bracket.sections``.
"""
import copy
from typing import Callable, Dict, List, Optional

from .errors import InvalidMatchData, PlayerIdentityError
from .models import (
    Bracket, Match, DOUBLE_ELIMINATION, DOUBLE_ELIMINATION_SECTIONS, MAIN,
    SECTION_ALIASES, WINNERS,
)

SHAPE_EMPTY = 'empty'
SHAPE_FLAT = 'flat'
SHAPE_ROUNDS = 'rounds'
SHAPE_SECTIONS = 'sections'
SHAPE_MALFORMED = 'malformed'

MalformedCallback = Callable[[object, str], None]


def is_match_shaped(value) -> bool:
    """A match is anything carrying an ``id`` or ``players`` field."""
    if isinstance(value, Match):
        return True
    return isinstance(value, dict) and ('id' in value or 'players' in value)


def classify(tree) -> str:
    """Tell which wire shape a match tree has."""
    if tree is None:
        return SHAPE_EMPTY
    if isinstance(tree, list):
        if not tree:
            return SHAPE_EMPTY
        first = tree[0]
        if is_match_shaped(first):
            return SHAPE_FLAT
        if isinstance(first, list) and first and is_match_shaped(first[0]):
            return SHAPE_ROUNDS
        return SHAPE_MALFORMED
    if isinstance(tree, dict) and not is_match_shaped(tree):
        return SHAPE_SECTIONS
    return SHAPE_MALFORMED


def _report(on_malformed: Optional[MalformedCallback], branch, reason: str) -> None:
    if on_malformed is not None:
        on_malformed(branch, reason)


def _copy_match(match) -> dict:
    if isinstance(match, Match):
        return match.to_dict()
    return copy.deepcopy(match)


def flatten(tree, on_malformed: Optional[MalformedCallback] = None) -> List[dict]:
    """
    Flatten any supported shape into a list of match dicts.

    Matches found under a named section are tagged with that section
    unless they already carry one. Branches that cannot be classified
    contribute no matches and are passed to ``on_malformed``. The input
    is never modified.
    """
    shape = classify(tree)
    if shape == SHAPE_EMPTY:
        return []
    if shape == SHAPE_MALFORMED:
        _report(on_malformed, tree, 'unrecognized match tree shape')
        return []

    flat = []
    if shape == SHAPE_FLAT:
        for entry in tree:
            if is_match_shaped(entry):
                flat.append(_copy_match(entry))
            else:
                _report(on_malformed, entry, 'not a match')
    elif shape == SHAPE_ROUNDS:
        for round_matches in tree:
            if not isinstance(round_matches, list):
                _report(on_malformed, round_matches, 'round is not a list')
                continue
            for entry in round_matches:
                if is_match_shaped(entry):
                    flat.append(_copy_match(entry))
                else:
                    _report(on_malformed, entry, 'not a match')
    else:
        for section, branch in tree.items():
            for match in flatten(branch, on_malformed):
                if not match.get('section'):
                    match['section'] = section
                flat.append(match)
    return flat


def _field(match, name: str, default=None):
    if isinstance(match, Match):
        return getattr(match, name, default)
    return match.get(name, default)


def _number(value) -> int:
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def group_rounds(flat: List) -> List[List]:
    """
    Rebuild rounds from a flat list.

    Matches are grouped on ``round`` (missing means round 1) and sorted by
    ``match_number`` within each group. Sparse round numbers still give a
    dense list: rounds 1, 3 and 7 become three consecutive rounds.
    """
    groups: Dict[int, list] = {}
    for match in flat:
        round_number = _number(_field(match, 'round')) or 1
        groups.setdefault(round_number, []).append(match)
    return [
        sorted(groups[round_number], key=lambda m: _number(_field(m, 'match_number')))
        for round_number in sorted(groups)
    ]


def _split_sections(flat: List, default_section: str, aliases: Optional[Dict[str, str]] = None) -> Dict[str, list]:
    sections: Dict[str, list] = {}
    for match in flat:
        section = _field(match, 'section') or default_section
        if aliases:
            section = aliases.get(section, section)
        sections.setdefault(section, []).append(match)
    return sections


def compose(flat: List[dict], shape: str, section_names: Optional[List[str]] = None):
    """
    Rebuild a wire shape from a flat list; the inverse of ``flatten``.

    Sections are keyed on the tag each match carries, exactly as ``flatten``
    wrote it. A flat list cannot record a section with no matches, so pass
    ``section_names`` to have those keys present as empty lists.
    """
    if shape == SHAPE_FLAT:
        return list(flat)
    if shape == SHAPE_ROUNDS:
        return group_rounds(flat)
    if shape == SHAPE_SECTIONS:
        composed = {section: [] for section in section_names or []}
        for section, matches in _split_sections(flat, WINNERS).items():
            composed[section] = group_rounds(matches)
        return composed
    return []


def _check_player_identity(raw: dict, bracket_id) -> None:
    players = raw.get('players')
    if not isinstance(players, list):
        return
    for index, player in enumerate(players):
        if isinstance(player, dict) and isinstance(player.get('id'), (dict, list)):
            raise PlayerIdentityError(bracket_id, raw.get('id'), index, player.get('id'))


def load_tree(bracket_type: str, wire, bracket_id=None,
              on_malformed: Optional[MalformedCallback] = None) -> Dict[str, List[List[Match]]]:
    """
    Ingest a wire match tree into canonical sections.

    Matches that fail validation are skipped and reported through
    ``on_malformed``. A player id that is itself a mapping or list raises
    PlayerIdentityError instead, since it means the stored tree is corrupt.

    Args:
        bracket_type: Bracket type, decides the section layout
        wire: Match tree in any supported shape
        bracket_id: Used in error context only
        on_malformed: Called with (branch, reason) for every skipped branch

    Returns:
        Sections dict of rounds of Match objects
    """
    matches = []
    for raw in flatten(wire, on_malformed):
        _check_player_identity(raw, bracket_id)
        try:
            matches.append(Match.from_dict(raw))
        except InvalidMatchData as e:
            _report(on_malformed, raw, str(e))

    if bracket_type != DOUBLE_ELIMINATION:
        return {MAIN: group_rounds(matches)}

    sections = {section: [] for section in DOUBLE_ELIMINATION_SECTIONS}
    for section, section_matches in _split_sections(matches, WINNERS, SECTION_ALIASES).items():
        if section not in sections:
            _report(on_malformed, section, 'unknown double elimination section')
            continue
        for match in section_matches:
            match.section = section
        sections[section] = group_rounds(section_matches)
    return sections


def dump_tree(bracket: Bracket) -> List[dict]:
    """Flat, section-tagged list of match dicts for storage."""
    return [match.to_dict() for _, match in bracket.iter_matches()]


def dump_nested(bracket: Bracket):
    """Rounds (or a section object for double elimination) for API responses."""
    if bracket.type == DOUBLE_ELIMINATION:
        return {
            section: [[match.to_dict() for match in round_matches] for round_matches in rounds]
            for section, rounds in bracket.sections.items()
        }
    return [[match.to_dict() for match in round_matches] for round_matches in bracket.rounds(MAIN)]
