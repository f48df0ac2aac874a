"""uniformity.py — χ²-проверка равномерности блуждания Якобсона–Мэтьюза.

Для малых порядков все латинские квадраты перечисляются явно:
  L(2) = 2,  L(3) = 12,  L(4) = 576.
Блуждание запускается trials раз с независимыми зёрнами, частоты
квадратов сравниваются с равномерными по критерию χ².

Для чётных порядков независимые запуски неравномерны (чётность числа
шагов): при n = 2 всегда циклический квадрат, при n = 4 χ² велико.
"""
from __future__ import annotations

import logging
import math
import os
import random
import sys
from collections import Counter

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from libs.latincore.latincore import InvalidOrderError, build_cyclic, check_order
from projects.latinwalk.latinwalk import project, randomize

logger = logging.getLogger(__name__)

MAX_ENUM_ORDER = 4


# ── перечисление ──────────────────────────────────────────────────────────────

def enumerate_latin_squares(order: int) -> list[tuple[tuple[int, ...], ...]]:
    """Все латинские квадраты порядка order (перебор с возвратом)."""
    check_order(order)
    if order > MAX_ENUM_ORDER:
        raise InvalidOrderError(f"Перечисление доступно для порядков ≤ {MAX_ENUM_ORDER}")
    n = order
    grid = [[-1] * n for _ in range(n)]
    used_row = [set() for _ in range(n)]
    used_col = [set() for _ in range(n)]
    result = []

    def _fill(pos: int) -> None:
        if pos == n * n:
            result.append(tuple(tuple(row) for row in grid))
            return
        x, y = divmod(pos, n)
        for s in range(n):
            if s in used_row[x] or s in used_col[y]:
                continue
            grid[x][y] = s
            used_row[x].add(s)
            used_col[y].add(s)
            _fill(pos + 1)
            used_row[x].discard(s)
            used_col[y].discard(s)
        grid[x][y] = -1

    _fill(0)
    return result


# ── выборка ───────────────────────────────────────────────────────────────────

def sample_counts(order: int, trials: int, seed: int | None = None) -> Counter:
    """Частоты квадратов в trials независимых запусках блуждания."""
    check_order(order)
    rng = random.Random(seed)
    counts: Counter = Counter()
    for _ in range(trials):
        cube = build_cyclic(order, random.Random(rng.getrandbits(64)))
        randomize(cube)
        counts[project(cube).key()] += 1
    logger.debug("sample_counts: n=%d, испытаний %d, различных квадратов %d",
                 order, trials, len(counts))
    return counts


# ── статистика ────────────────────────────────────────────────────────────────

def chi_square_statistic(counts: Counter, squares) -> float:
    """χ² частот квадратов против равномерного распределения на squares.

    Квадраты, которых нет в counts, считаются с частотой 0; ключи counts
    вне squares в статистику не входят.
    """
    expected = sum(counts[sq] for sq in squares) / len(squares)
    if expected == 0:
        return 0.0
    return sum((counts[sq] - expected) ** 2 for sq in squares) / expected


def chi_square_p_value(chi2, df):
    """
    P(χ²_df > chi2): преобразование Уилсона–Хилферти к нормальному,
    хвост нормального по A&S 26.2.17.
    """
    if chi2 <= 0:
        return 1.0
    k = 2 / (9 * df)
    z = ((chi2 / df) ** (1 / 3) - (1 - k)) / math.sqrt(k)
    az = abs(z)
    if az > 8:
        return 0.0 if z > 0 else 1.0
    t = 1 / (1 + 0.2316419 * az)
    poly = t * (0.319381530 + t * (-0.356563782 +
           t * (1.781477937 + t * (-1.821255978 + t * 1.330274429))))
    phi = math.exp(-az * az / 2) / math.sqrt(2 * math.pi)
    right_tail = phi * poly
    return right_tail if z >= 0 else 1.0 - right_tail


def uniformity_report(order: int, trials: int, seed: int | None = None) -> dict:
    """Частоты всех квадратов порядка order и χ² против равномерного."""
    squares = enumerate_latin_squares(order)
    counts = sample_counts(order, trials, seed)
    observed = [counts.get(sq, 0) for sq in squares]
    unknown = sum(counts.values()) - sum(observed)
    chi2 = chi_square_statistic(counts, squares)
    df = len(squares) - 1
    return {
        'order': order,
        'trials': trials,
        'squares': len(squares),
        'observed': sum(1 for c in observed if c > 0),
        'unknown': unknown,
        'expected': trials / len(squares),
        'min_count': min(observed),
        'max_count': max(observed),
        'chi2': chi2,
        'df': df,
        'p_value': chi_square_p_value(chi2, df),
    }
