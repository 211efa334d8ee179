from typing import Dict, Mapping, Optional, Tuple

from dualmath.models import DigitBoard, TeamStats, TEAMS, digit_length, digits_of


def expected_digits(answer: int) -> Dict[str, int]:
    thousands, hundreds, tens, ones = digits_of(answer)
    return {'thousands': thousands, 'hundreds': hundreds, 'tens': tens, 'ones': ones}


def new_board(answer: int, difficulty: str) -> DigitBoard:
    """Fresh board for ``answer`` with the high-order places pre-filled per difficulty.

    easy fills nothing; medium fills hundreds of a 3+ digit answer; hard fills
    thousands and hundreds of a 4 digit answer, or hundreds of a 3 digit one.
    """
    length = digit_length(answer)
    board = DigitBoard(answer_length=length)
    expected = expected_digits(answer)
    if difficulty == 'medium' and length >= 3:
        board.prefill('hundreds', expected['hundreds'])
    elif difficulty == 'hard':
        if length == 4:
            board.prefill('thousands', expected['thousands'])
        if length >= 3:
            board.prefill('hundreds', expected['hundreds'])
    return board


def compose_value(values: Mapping[str, Optional[int]], answer: int) -> int:
    """Number spelled by the board for an answer of ``answer``'s length.

    Unset tens/ones count as 0. Unset hundreds/thousands fall back to the
    answer's own digit, since those places are never player-written.
    """
    length = digit_length(answer)
    expected = expected_digits(answer)
    tens = values.get('tens') or 0
    ones = values.get('ones') or 0
    if length == 1:
        return ones
    if length == 2:
        return tens * 10 + ones
    hundreds = values.get('hundreds')
    if hundreds is None:
        hundreds = expected['hundreds']
    if length == 3:
        return hundreds * 100 + tens * 10 + ones
    thousands = values.get('thousands')
    if thousands is None:
        thousands = expected['thousands']
    return thousands * 1000 + hundreds * 100 + tens * 10 + ones


def score_board(board: DigitBoard, answer: int) -> Tuple[int, bool]:
    built = compose_value(board.values, answer)
    return built, built == answer


def record_result(stats: TeamStats, is_correct: bool, target: int, elapsed_ms: int) -> None:
    """Count a finished round; stamp time-to-target the first time the target is reached."""
    if not is_correct:
        return
    stats.correct_count += 1
    if stats.correct_count >= target and stats.time_to_target is None:
        stats.time_to_target = elapsed_ms


def decide_winner(stats: Mapping[str, TeamStats], target: int) -> Optional[str]:
    """'A', 'B', 'tie', or None while no team has reached ``target``.

    When both teams are at the target the earlier time-to-target wins and
    equal times tie.
    """
    reached = [t for t in TEAMS if stats[t].correct_count >= target]
    if not reached:
        return None
    if len(reached) == 1:
        return reached[0]
    inf = float('inf')
    t_a = stats['A'].time_to_target
    t_b = stats['B'].time_to_target
    t_a = inf if t_a is None else t_a
    t_b = inf if t_b is None else t_b
    if t_a < t_b:
        return 'A'
    if t_b < t_a:
        return 'B'
    return 'tie'
