"""
Unit tests for the bracket entity model.
"""
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.errors import InvalidMatchData
from brackets.ids import SequentialIds, random_ids
from brackets.models import (
    Bracket, Event, Match, MatchLocation, Slot,
    BYE, COMPLETED, DOUBLE_ELIMINATION, GRAND_FINALS, PENDING, ROUND_ROBIN,
    SINGLE_ELIMINATION, TBD,
)


class TestSlot:
    """Tests for the Slot class."""

    def test_default_slot_is_placeholder(self):
        slot = Slot()
        assert slot.name == TBD
        assert slot.is_placeholder
        assert not slot.is_bye
        assert not slot.is_participant

    def test_bye_is_always_completed(self):
        slot = Slot.bye()
        assert slot.is_bye
        assert slot.completed
        assert not slot.is_placeholder

    def test_named_placeholder(self):
        slot = Slot.placeholder('G3 Loser')
        assert slot.is_placeholder
        assert slot.name == 'G3 Loser'

    def test_participant(self):
        slot = Slot('p1', 'Alice')
        assert slot.is_participant

    def test_advanced_resets_score_and_copies(self):
        """Advancing produces a fresh value, never the same object."""
        slot = Slot('p1', 'Alice', score=3, completed=True)
        advanced = slot.advanced()
        assert advanced is not slot
        assert advanced.id == 'p1'
        assert advanced.score == 0
        assert advanced.completed is False
        slot.name = 'Changed'
        assert advanced.name == 'Alice'

    def test_advanced_bye_stays_completed(self):
        assert Slot.bye('x').advanced().completed is True

    def test_from_dict_forces_bye_completed(self):
        slot = Slot.from_dict({'id': None, 'name': 'BYE', 'score': 0, 'completed': False})
        assert slot.completed is True

    def test_from_dict_converts_integer_id(self):
        assert Slot.from_dict({'id': 7, 'name': 'Bob'}).id == '7'

    def test_from_dict_rejects_negative_score(self):
        with pytest.raises(InvalidMatchData):
            Slot.from_dict({'id': 'p1', 'name': 'Alice', 'score': -1})

    def test_from_dict_rejects_non_mapping(self):
        with pytest.raises(InvalidMatchData):
            Slot.from_dict('Alice')


class TestMatch:
    """Tests for the Match class."""

    def _match(self):
        return Match('m1', 1, 1, [Slot('a', 'Alice'), Slot('b', 'Bob')], venue='Court 1')

    def test_defaults(self):
        match = self._match()
        assert match.status == PENDING
        assert match.is_tie is False
        assert match.winner_id is None

    def test_to_dict_and_back(self):
        match = self._match()
        match.section = GRAND_FINALS
        assert Match.from_dict(match.to_dict()).to_dict() == match.to_dict()

    def test_to_dict_omits_missing_section(self):
        assert 'section' not in self._match().to_dict()

    def test_from_dict_accepts_camel_case(self):
        match = Match.from_dict({
            'id': 'm1', 'round': 2, 'matchNumber': 3, 'winnerId': 'a', 'isTie': False,
            'status': 'completed', 'section': 'grandFinals',
            'players': [{'id': 'a', 'name': 'Alice', 'score': 2, 'completed': True},
                        {'id': 'b', 'name': 'Bob', 'score': 1, 'completed': True}],
        })
        assert match.match_number == 3
        assert match.winner_id == 'a'
        assert match.section == GRAND_FINALS

    def test_from_dict_integer_ids(self):
        match = Match.from_dict({
            'id': 7, 'status': 'completed', 'winner_id': 12, 'loser_id': 34,
            'players': [{'id': 12, 'name': 'Alice', 'score': 2, 'completed': True},
                        {'id': 34, 'name': 'Bob', 'score': 1, 'completed': True}],
        })
        assert match.id == '7'
        assert match.winner_id == '12'
        assert match.loser_id == '34'
        assert match.winner_slot().name == 'Alice'
        assert match.loser_slot().name == 'Bob'

    def test_from_dict_requires_two_players(self):
        with pytest.raises(InvalidMatchData):
            Match.from_dict({'id': 'm1', 'players': [{'id': 'a', 'name': 'Alice'}]})

    def test_from_dict_requires_id(self):
        with pytest.raises(InvalidMatchData):
            Match.from_dict({'players': [{}, {}]})

    def test_from_dict_rejects_unknown_status(self):
        with pytest.raises(InvalidMatchData):
            Match.from_dict({'id': 'm1', 'status': 'live', 'players': [{}, {}]})

    def test_dead_match(self):
        match = Match('m1', 1, 1, [Slot.bye(), Slot.bye()])
        assert match.is_dead
        assert match.is_resolved

    def test_winner_and_loser_slots(self):
        match = self._match()
        match.status = COMPLETED
        match.winner_id = 'b'
        assert match.winner_slot().name == 'Bob'
        assert match.loser_slot().name == 'Alice'

    def test_no_winner_for_tie(self):
        match = self._match()
        match.status = COMPLETED
        match.is_tie = True
        assert match.winner_slot() is None


class TestEvent:
    """Tests for Event parsing."""

    def test_from_dict_accepts_camel_case(self):
        event = Event.from_dict({'id': 1, 'startDate': '2026-05-01', 'endDate': '2026-05-02', 'venue': 'Hall'})
        assert event.start_date == '2026-05-01'
        assert event.end_date == '2026-05-02'

    def test_from_dict_normalizes_yaml_values(self):
        """Unquoted YAML dates and times arrive as date objects and integers."""
        import datetime
        event = Event.from_dict({'start_date': datetime.date(2026, 5, 1), 'start_time': 630})
        assert event.start_date == '2026-05-01'
        assert event.start_time == '10:30'


class TestBracket:
    """Tests for the Bracket class."""

    def test_allow_draws_defaults_by_type(self):
        assert Bracket('b1', 'RR', ROUND_ROBIN).allow_draws is True
        assert Bracket('b2', 'SE', SINGLE_ELIMINATION).allow_draws is False

    def test_draws_only_permitted_in_round_robin(self):
        assert Bracket('b1', 'DE', DOUBLE_ELIMINATION, allow_draws=True).draws_permitted is False

    def test_iter_matches_and_match_at(self):
        match = Match('m1', 1, 1, [Slot(), Slot()])
        bracket = Bracket('b1', 'SE', SINGLE_ELIMINATION, sections={'main': [[match]]})
        locations = list(bracket.iter_matches())
        assert locations == [(MatchLocation('main', 0, 0), match)]
        assert bracket.match_at(MatchLocation('main', 0, 0)) is match

    def test_record_round_trip(self):
        bracket = Bracket('b1', 'Cup', SINGLE_ELIMINATION, event_id='ev1', tiebreaker_data={'x': 1})
        copy = Bracket.from_record(bracket.to_record())
        assert copy.to_record() == bracket.to_record()


class TestIds:
    """Tests for id generators."""

    def test_sequential_ids(self):
        new_id = SequentialIds('p')
        assert [new_id(), new_id(), new_id()] == ['p1', 'p2', 'p3']

    def test_random_ids_are_short_and_distinct(self):
        new_id = random_ids()
        ids = {new_id() for _ in range(50)}
        assert len(ids) == 50
        assert all(len(i) == 9 for i in ids)
