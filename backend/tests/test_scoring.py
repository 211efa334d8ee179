from dualmath.models import DigitBoard, TeamStats, digits_of
from dualmath.services.games.scoring import (
    compose_value, decide_winner, expected_digits, new_board, record_result, score_board,
)


def _board(answer, difficulty='easy', **digits):
    board = new_board(answer, difficulty)
    for place, value in digits.items():
        board.values[place] = value
    return board


def test_digits_of_is_numeric_and_padded():
    assert digits_of(42) == [0, 0, 4, 2]
    assert digits_of(5872) == [5, 8, 7, 2]
    assert digits_of(7, width=2) == [0, 7]
    assert expected_digits(305) == {'thousands': 0, 'hundreds': 3, 'tens': 0, 'ones': 5}


def test_one_digit_answer_reads_ones_only():
    assert score_board(_board(7, tens=3, ones=7), 7) == (7, True)


def test_two_digit_answer():
    assert score_board(_board(42, tens=4, ones=2), 42) == (42, True)
    assert score_board(_board(42, tens=2, ones=4), 42) == (24, False)


def test_three_digit_answer_with_prefilled_hundreds():
    board = _board(123, 'medium', tens=2, ones=3)
    assert board.values['hundreds'] == 1 and board.locked['hundreds']
    assert score_board(board, 123) == (123, True)


def test_three_digit_answer_falls_back_to_answer_hundreds():
    # easy boards never pre-fill, the hundreds digit still comes from the answer
    board = DigitBoard(answer_length=3)
    board.values.update(tens=2, ones=3)
    assert compose_value(board.values, 123) == 123


def test_four_digit_answer_wrong_ones():
    board = _board(5872, 'hard', tens=7, ones=1)
    assert board.values['thousands'] == 5 and board.values['hundreds'] == 8
    assert score_board(board, 5872) == (5871, False)


def test_unset_places_count_as_zero():
    assert compose_value({'tens': None, 'ones': 4}, 64) == 4


def test_prefill_rules_by_difficulty():
    easy = new_board(456, 'easy')
    assert easy.values['hundreds'] is None and not easy.locked['hundreds']

    medium = new_board(56, 'medium')
    assert medium.values['hundreds'] is None
    assert new_board(456, 'medium').values['hundreds'] == 4

    hard4 = new_board(1234, 'hard')
    assert (hard4.values['thousands'], hard4.values['hundreds']) == (1, 2)
    assert hard4.locked['thousands'] and hard4.locked['hundreds']
    assert not hard4.locked['tens'] and not hard4.locked['ones']
    hard3 = new_board(987, 'hard')
    assert hard3.values['thousands'] is None and hard3.values['hundreds'] == 9
    assert hard3.answer_length == 3


def test_record_result_stamps_time_once():
    stats = TeamStats(correct_count=9)
    record_result(stats, True, 10, 4000)
    assert stats.correct_count == 10 and stats.time_to_target == 4000
    record_result(stats, True, 10, 9000)
    assert stats.correct_count == 11 and stats.time_to_target == 4000


def test_record_result_ignores_wrong_rounds():
    stats = TeamStats(correct_count=9)
    record_result(stats, False, 10, 4000)
    assert stats.correct_count == 9 and stats.time_to_target is None


def test_decide_winner_earlier_time_wins():
    stats = {'A': TeamStats(10, 4000), 'B': TeamStats(10, 5000)}
    assert decide_winner(stats, 10) == 'A'
    stats = {'A': TeamStats(10, 6000), 'B': TeamStats(10, 5000)}
    assert decide_winner(stats, 10) == 'B'


def test_decide_winner_equal_times_tie():
    stats = {'A': TeamStats(10, 5000), 'B': TeamStats(10, 5000)}
    assert decide_winner(stats, 10) == 'tie'


def test_decide_winner_single_team():
    stats = {'A': TeamStats(10, 4000), 'B': TeamStats(7, None)}
    assert decide_winner(stats, 10) == 'A'
    assert stats['B'].time_to_target is None
    assert decide_winner({'A': TeamStats(3), 'B': TeamStats(9)}, 10) is None
