"""
Unit tests for single elimination bracket generation.
"""
import math
import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from brackets.elimination import (
    get_round_name,
    calculate_bracket_size,
    calculate_byes,
    calculate_rounds,
    seed_order,
    generate_single_elimination,
    add_consolation_match,
    remove_consolation_match,
    find_consolation_match,
)
from brackets.double_elimination import generate_double_elimination
from brackets.errors import InvalidGenerationInput
from brackets.models import Bracket, BYE, CONSOLATION, DOUBLE_ELIMINATION, MAIN, SINGLE_ELIMINATION, TBD


def _all_matches(rounds):
    return [match for round_matches in rounds for match in round_matches]


class TestBracketHelpers:
    """Tests for bracket helper functions."""

    def test_get_round_name(self):
        assert get_round_name(2) == "Final"
        assert get_round_name(4) == "Semifinal"
        assert get_round_name(8) == "Quarterfinal"
        assert get_round_name(16) == "Round of 16"

    def test_calculate_bracket_size(self):
        assert calculate_bracket_size(2) == 2
        assert calculate_bracket_size(3) == 4
        assert calculate_bracket_size(8) == 8
        assert calculate_bracket_size(9) == 16
        assert calculate_bracket_size(0) == 0

    def test_calculate_byes(self):
        assert calculate_byes(8) == 0
        assert calculate_byes(5) == 3  # 8 - 5
        assert calculate_byes(12) == 4  # 16 - 12

    def test_calculate_rounds(self):
        assert calculate_rounds(2) == 1
        assert calculate_rounds(5) == 3
        assert calculate_rounds(16) == 4


class TestSeedOrder:
    """Tests for the seeding permutation."""

    def test_base_cases(self):
        assert seed_order(1) == [1]
        assert seed_order(2) == [1, 2]

    def test_four_and_eight(self):
        assert seed_order(4) == [1, 4, 2, 3]
        assert seed_order(8) == [1, 8, 4, 5, 2, 7, 3, 6]

    @pytest.mark.parametrize("size", [4, 8, 16, 32, 64, 128])
    def test_is_permutation(self, size):
        assert sorted(seed_order(size)) == list(range(1, size + 1))

    @pytest.mark.parametrize("size", [4, 8, 16, 32, 64, 128])
    def test_top_two_seeds_in_opposite_halves(self, size):
        """Seeds 1 and 2 can only meet in the final."""
        order = seed_order(size)
        assert order.index(1) < size // 2 <= order.index(2)

    @pytest.mark.parametrize("size", [4, 8, 16, 32])
    def test_first_round_pairs_sum_to_size_plus_one(self, size):
        order = seed_order(size)
        for i in range(0, size, 2):
            assert order[i] + order[i + 1] == size + 1

    @pytest.mark.parametrize("size", [0, 3, 6, 12, -4, True, 2.0])
    def test_rejects_non_power_of_two(self, size):
        with pytest.raises(InvalidGenerationInput):
            seed_order(size)


class TestGenerateSingleElimination:
    """Tests for single elimination tree generation."""

    @pytest.mark.parametrize("n", range(2, 34))
    def test_round_and_match_counts(self, n, new_id):
        rounds = generate_single_elimination(n, new_id)[MAIN]
        size = 2 ** math.ceil(math.log2(n))
        assert len(rounds) == math.ceil(math.log2(n))
        assert len(_all_matches(rounds)) == size - 1

    @pytest.mark.parametrize("n", range(2, 34))
    def test_first_round_bye_count(self, n, new_id):
        rounds = generate_single_elimination(n, new_id)[MAIN]
        byes = sum(1 for match in rounds[0] for slot in match.players if slot.name == BYE)
        assert byes == 2 ** math.ceil(math.log2(n)) - n

    def test_byes_face_top_seeds(self, new_id):
        """With 6 players, seeds 7 and 8 are byes against seeds 2 and 1."""
        rounds = generate_single_elimination(6, new_id)[MAIN]
        first = rounds[0]
        assert [slot.name for slot in first[0].players] == ['Player 1', BYE]
        assert [slot.name for slot in first[1].players] == ['Player 4', 'Player 5']
        assert [slot.name for slot in first[2].players] == ['Player 2', BYE]
        assert [slot.name for slot in first[3].players] == ['Player 3', 'Player 6']

    def test_later_rounds_are_placeholders(self, new_id):
        rounds = generate_single_elimination(8, new_id)[MAIN]
        for round_matches in rounds[1:]:
            for match in round_matches:
                assert [slot.name for slot in match.players] == [TBD, TBD]
                assert all(slot.is_placeholder for slot in match.players)

    def test_round_and_match_numbers(self, new_id):
        rounds = generate_single_elimination(8, new_id)[MAIN]
        for round_index, round_matches in enumerate(rounds):
            assert [m.round for m in round_matches] == [round_index + 1] * len(round_matches)
            assert [m.match_number for m in round_matches] == list(range(1, len(round_matches) + 1))

    def test_match_ids_are_unique(self, new_id):
        rounds = generate_single_elimination(16, new_id)[MAIN]
        ids = [match.id for match in _all_matches(rounds)]
        assert len(ids) == len(set(ids))

    def test_custom_names(self, new_id):
        rounds = generate_single_elimination(2, new_id, names=['Alice', 'Bob'])[MAIN]
        assert [slot.name for slot in rounds[0][0].players] == ['Alice', 'Bob']

    def test_names_must_match_count(self, new_id):
        with pytest.raises(InvalidGenerationInput):
            generate_single_elimination(3, new_id, names=['Alice', 'Bob'])

    def test_event_defaults(self, new_id, event):
        rounds = generate_single_elimination(4, new_id, event=event)[MAIN]
        for match in _all_matches(rounds):
            assert match.date == '2026-05-01'
            assert match.time is None
            assert match.venue == 'Main Hall'

    @pytest.mark.parametrize("n", [1, 0, -3, 2.5, '8', True, None])
    def test_invalid_player_count(self, n, new_id):
        with pytest.raises(InvalidGenerationInput):
            generate_single_elimination(n, new_id)

    def test_third_place_match(self, new_id):
        rounds = generate_single_elimination(8, new_id, include_third_place=True)[MAIN]
        final_round = rounds[-1]
        assert len(final_round) == 2
        consolation = final_round[1]
        assert consolation.section == CONSOLATION
        assert consolation.match_number == 2
        assert [slot.name for slot in consolation.players] == ['Loser of SF1', 'Loser of SF2']
        main_matches = [m for m in _all_matches(rounds) if m.section != CONSOLATION]
        assert len(main_matches) == 7

    def test_no_third_place_with_single_round(self, new_id):
        rounds = generate_single_elimination(2, new_id, include_third_place=True)[MAIN]
        assert len(rounds[-1]) == 1


class TestConsolationToggle:
    """Tests for adding and removing the third-place match."""

    def _bracket(self, new_id, n=8):
        return Bracket('b1', 'Cup', SINGLE_ELIMINATION, sections=generate_single_elimination(n, new_id))

    def test_add_and_remove(self, new_id):
        bracket = self._bracket(new_id)
        match = add_consolation_match(bracket, new_id)
        assert find_consolation_match(bracket) is match
        assert add_consolation_match(bracket, new_id) is match
        assert remove_consolation_match(bracket) is True
        assert find_consolation_match(bracket) is None
        assert remove_consolation_match(bracket) is False

    def test_add_uses_known_semifinal_losers(self, new_id):
        bracket = self._bracket(new_id, n=4)
        semifinal = bracket.rounds(MAIN)[0][0]
        semifinal.status = 'completed'
        semifinal.winner_id = semifinal.players[0].id
        match = add_consolation_match(bracket, new_id)
        assert match.players[0].name == 'Player 4'
        assert match.players[0] is not semifinal.players[1]
        assert match.players[1].name == 'Loser of SF2'

    def test_rejects_other_bracket_types(self, new_id):
        bracket = Bracket('b1', 'DE', DOUBLE_ELIMINATION, sections=generate_double_elimination(4, new_id))
        with pytest.raises(InvalidGenerationInput):
            add_consolation_match(bracket, new_id)

    def test_rejects_single_round(self, new_id):
        bracket = self._bracket(new_id, n=2)
        with pytest.raises(InvalidGenerationInput):
            add_consolation_match(bracket, new_id)
