import random
from dataclasses import dataclass
from typing import Optional

ADD, SUB, MUL, DIV = '+', '-', '×', '÷'

_ALIASES = {'med': 'medium'}
_MAX_ANSWER = {'easy': 99, 'medium': 999, 'hard': 9999}


@dataclass(frozen=True)
class Question:
    a: int
    b: int
    op: str
    answer: int


def normalize_difficulty(value) -> Optional[str]:
    """Map a client difficulty value onto easy/medium/hard, or None if unknown."""
    if not isinstance(value, str):
        return None
    key = value.strip().lower()
    key = _ALIASES.get(key, key)
    return key if key in _MAX_ANSWER else None


def make_question(difficulty: str = 'easy', rng: Optional[random.Random] = None) -> Question:
    """Generate one arithmetic question for the given difficulty.

    - easy: answers 0-99 from +, - and single digit ×
    - medium: answers 10-999, mostly three digits
    - hard: answers 100-9999, mostly four digits

    Answers are never negative and ÷ is built from divisor × quotient, so it
    always divides exactly.
    """
    rng = rng or random
    difficulty = normalize_difficulty(difficulty) or 'easy'

    if difficulty == 'easy':
        op = rng.choice((ADD, SUB, MUL))
        if op == ADD:
            a, b = rng.randint(0, 49), rng.randint(0, 49)
            return Question(a, b, op, a + b)
        if op == SUB:
            a, b = rng.randint(0, 99), rng.randint(0, 99)
            if b > a:
                a, b = b, a
            return Question(a, b, op, a - b)
        a, b = rng.randint(0, 9), rng.randint(0, 9)
        return Question(a, b, op, a * b)

    op = rng.choice((ADD, SUB, MUL, DIV))
    if difficulty == 'medium':
        low, high = 100, 999
        mul_range, quotient_range, sub_spread = (5, 34), (10, 99), 500
    else:
        low, high = 1000, 9999
        mul_range, quotient_range, sub_spread = (20, 109), (100, 999), 2000

    if op == ADD:
        target = rng.randint(low, high)
        a = rng.randrange(target)
        return Question(a, target - a, op, target)
    if op == SUB:
        answer = rng.randint(low, high)
        b = rng.randint(1, sub_spread)
        return Question(answer + b, b, op, answer)
    if op == MUL:
        # the board has four places at most, so redraw products that overflow the tier
        while True:
            a, b = rng.randint(*mul_range), rng.randint(*mul_range)
            if a * b <= _MAX_ANSWER[difficulty]:
                return Question(a, b, op, a * b)
    quotient = rng.randint(*quotient_range)
    divisor = rng.randint(2, 10)
    return Question(divisor * quotient, divisor, DIV, quotient)
