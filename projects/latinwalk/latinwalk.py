"""latinwalk.py — Случайные латинские квадраты: блуждание Якобсона–Мэтьюза.

Источник: M. T. Jacobson, P. Matthews, «Generating uniformly distributed
random latin squares», J. Combin. Des. 4 (1996).

Алгоритм:
  1. Куб инцидентности циклического квадрата (z = (x + y) mod n).
  2. n³ шагов блуждания (перемешивание).
  3. Ещё шаги, пока куб не станет правильным (очистка).
  4. Проекция куба на квадрат n×n.

Один шаг меняет восемь ячеек подкуба 2×2×2: четыре повышаются,
четыре понижаются. Суммы по всем прямым сохраняются, и после шага
в кубе не более одной ячейки IMPROPER.

Правильные кубы одной длинной цепочки шагов распределены равномерно
на всех латинских квадратах порядка n (см. generate о чётных порядках).
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import random
import sys
from dataclasses import dataclass

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', '..'))

from libs.latincore.latincore import (
    Axis, CellState, Coordinate, ImproperAt, IncidenceCube, InvalidOrderError,
    InvariantViolation, PROPER, build_cyclic, check_order, render_cube,
)

logger = logging.getLogger(__name__)

_FALLBACK_ORDER = 4
_FALLBACK_LOG_LEVEL = 'WARNING'


def _env_order(raw: str | None) -> int:
    """LATINWALK_DEFAULT_ORDER; нечисловое значение → 4."""
    if raw is None:
        return _FALLBACK_ORDER
    try:
        return int(raw)
    except ValueError:
        logger.warning("LATINWALK_DEFAULT_ORDER=%r не число, используется %d",
                       raw, _FALLBACK_ORDER)
        return _FALLBACK_ORDER


def _env_log_level(raw: str | None) -> str:
    """LATINWALK_LOG_LEVEL; неизвестный уровень → WARNING."""
    if raw is None:
        return _FALLBACK_LOG_LEVEL
    name = raw.strip().upper()
    if isinstance(logging.getLevelName(name), int):
        return name
    logger.warning("LATINWALK_LOG_LEVEL=%r не уровень журнала, используется %s",
                   raw, _FALLBACK_LOG_LEVEL)
    return _FALLBACK_LOG_LEVEL


DEFAULT_ORDER = _env_order(os.environ.get('LATINWALK_DEFAULT_ORDER'))
LOG_LEVEL = _env_log_level(os.environ.get('LATINWALK_LOG_LEVEL'))


# ── латинский квадрат ─────────────────────────────────────────────────────────

def is_latin(rows: list[list[int]]) -> bool:
    """True, если каждая строка и каждый столбец — перестановка 0..n-1."""
    n = len(rows)
    if n == 0 or any(len(row) != n for row in rows):
        return False
    full = set(range(n))
    if any(set(row) != full for row in rows):
        return False
    return all({rows[i][j] for i in range(n)} == full for j in range(n))


@dataclass
class LatinSquare:
    order: int
    rows: list[list[int]]

    @classmethod
    def cyclic(cls, order: int) -> LatinSquare:
        """Строка x = [(x + 0) mod n, (x + 1) mod n, ...]."""
        check_order(order)
        return cls(order, [[(x + y) % order for y in range(order)] for x in range(order)])

    @classmethod
    def empty(cls, order: int) -> LatinSquare:
        """Квадрат из нулей (не латинский), заготовка для проекции."""
        return cls(order, [[0] * order for _ in range(order)])

    def is_latin(self) -> bool:
        return is_latin(self.rows)

    def key(self) -> tuple[tuple[int, ...], ...]:
        return tuple(tuple(row) for row in self.rows)

    def to_dict(self) -> dict:
        return {'order': self.order, 'rows': self.rows, 'latin': self.is_latin()}

    def __str__(self) -> str:
        return render(self)


def render(square: LatinSquare) -> str:
    """Заголовок с порядком, строки через пустую строку, символы через 3 пробела."""
    body = '\n\n'.join('   '.join(str(s) for s in row) for row in square.rows)
    return f"Латинский квадрат порядка {square.order}\n\n{body}"


def project(cube: IncidenceCube) -> LatinSquare:
    """Проекция правильного куба: rows[x][y] = z единственной ON-ячейки."""
    if not cube.is_proper():
        raise InvariantViolation(
            f"Проекция неправильного куба (IMPROPER в {cube.improper_cell.as_tuple()})")
    n = cube.order
    square = LatinSquare.empty(n)
    for x in range(n):
        for y in range(n):
            on = [z for z, v in enumerate(cube.line(Coordinate(x, y, 0), Axis.Z))
                  if v is CellState.ON]
            if len(on) != 1:
                raise InvariantViolation(
                    f"В ячейке ({x}, {y}) {len(on)} символов вместо одного")
            square.rows[x][y] = on[0]
    return square


# ── блуждание ─────────────────────────────────────────────────────────────────

def move_step(cube: IncidenceCube) -> None:
    """Один шаг Якобсона–Мэтьюза.

    Правильный куб: начало — случайная OFF-ячейка (x1, y1, z1), на каждой
    прямой через неё ровно одна ON-ячейка, она и берётся.
    Неправильный куб: начало — ячейка IMPROPER, на каждой прямой через неё
    две ON-ячейки, выбирается одна из них с вероятностью 1/2.
    """
    improper = cube.improper_cell
    if improper is None:
        origin = cube.sample_off_cell()
        take_first = True
    else:
        origin = improper
        take_first = None

    x1, y1, z1 = origin.as_tuple()
    x2 = cube.pick_coordinate(0, y1, z1, Axis.X, take_first)
    y2 = cube.pick_coordinate(x1, 0, z1, Axis.Y, take_first)
    z2 = cube.pick_coordinate(x1, y1, 0, Axis.Z, take_first)

    for c in (Coordinate(x1, y1, z1), Coordinate(x1, y2, z2),
              Coordinate(x2, y2, z1), Coordinate(x2, y1, z2)):
        cube.raise_cell(c)
    last = Coordinate(x2, y2, z2)
    for c in (Coordinate(x1, y1, z2), Coordinate(x1, y2, z1),
              Coordinate(x2, y1, z1), last):
        cube.lower_cell(c)

    cube.state = ImproperAt(last) if cube[last] is CellState.IMPROPER else PROPER
    cube.moves += 1


def randomize(cube: IncidenceCube) -> None:
    """n³ шагов перемешивания, затем шаги до правильного куба."""
    mixing = cube.order ** 3
    for _ in range(mixing):
        move_step(cube)
    cleanup = 0
    while not cube.is_proper():
        move_step(cube)
        cleanup += 1
    logger.debug("randomize: n=%d, перемешивание %d шагов, очистка %d шагов",
                 cube.order, mixing, cleanup)


def generate(order: int, seed: int | None = None) -> LatinSquare:
    """Случайный латинский квадрат порядка order.

    Независимые запуски «n³ шагов, затем до первого правильного куба»
    не равномерны для чётных порядков: при n = 2 всегда выходит
    циклический квадрат, при n = 4 часть квадратов появляется только
    при чётном числе шагов. Равномерно распределены правильные кубы
    одной длинной цепочки move_step.
    """
    cube = build_cyclic(order, random.Random(seed))
    randomize(cube)
    return project(cube)


# ── CLI ───────────────────────────────────────────────────────────────────────

def _parse_order(raw: str | None) -> int:
    """Размер из аргумента; пустой или нечисловой → DEFAULT_ORDER."""
    if raw is None:
        return DEFAULT_ORDER
    try:
        return int(raw)
    except ValueError:
        logger.info("Не удалось разобрать размер %r, используется %d", raw, DEFAULT_ORDER)
        return DEFAULT_ORDER


def _cmd_random(args) -> None:
    square = generate(_parse_order(args.size), args.seed)
    if args.json:
        print(json.dumps(square.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(square)


def _cmd_cyclic(args) -> None:
    square = LatinSquare.cyclic(_parse_order(args.size))
    if args.json:
        print(json.dumps(square.to_dict(), ensure_ascii=False, indent=2))
    else:
        print(square)


def _cmd_cube(args) -> None:
    cube = build_cyclic(_parse_order(args.size), random.Random(args.seed))
    randomize(cube)
    if args.json:
        layers = [[[cube[Coordinate(x, y, z)].as_int() for y in range(cube.order)]
                   for x in range(cube.order)] for z in range(cube.order)]
        print(json.dumps({'order': cube.order, 'moves': cube.moves, 'layers': layers},
                         ensure_ascii=False, indent=2))
    else:
        print(f"Куб инцидентности порядка {cube.order} ({cube.moves} шагов)\n")
        print(render_cube(cube))


def _cmd_uniformity(args) -> None:
    from projects.latinwalk.uniformity import uniformity_report

    order = _parse_order(args.size) if args.size is not None else 3
    report = uniformity_report(order, args.trials, args.seed)
    if args.json:
        print(json.dumps(report, ensure_ascii=False, indent=2))
        return
    print(f"Равномерность, порядок {report['order']}, испытаний {report['trials']}:")
    print(f"  различных квадратов:  {report['squares']}")
    print(f"  встретилось:          {report['observed']}")
    print(f"  ожидаемая частота:    {report['expected']:.2f}")
    print(f"  min / max частота:    {report['min_count']} / {report['max_count']}")
    print(f"  χ² = {report['chi2']:.3f} (df = {report['df']}), p = {report['p_value']:.4f}")


_COMMANDS = {
    'random': _cmd_random,
    'cyclic': _cmd_cyclic,
    'cube': _cmd_cube,
    'uniformity': _cmd_uniformity,
}


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument('--seed', type=int, default=None,
                        help='зерно генератора (по умолчанию случайное)')
    common.add_argument('--json', action='store_true',
                        help='машиночитаемый JSON-вывод')
    common.add_argument('--verbose', '-v', action='store_true',
                        help='отладочный журнал в stderr')

    parser = argparse.ArgumentParser(
        prog='latinwalk',
        description='latinwalk — случайные латинские квадраты (Якобсон–Мэтьюз)')
    sub = parser.add_subparsers(dest='cmd')

    p_rand = sub.add_parser('random', parents=[common], help='случайный квадрат')
    p_rand.add_argument('size', nargs='?', help=f'порядок (по умолчанию {DEFAULT_ORDER})')

    p_cyc = sub.add_parser('cyclic', parents=[common], help='циклический квадрат')
    p_cyc.add_argument('size', nargs='?', help=f'порядок (по умолчанию {DEFAULT_ORDER})')

    p_cube = sub.add_parser('cube', parents=[common], help='куб инцидентности после блуждания')
    p_cube.add_argument('size', nargs='?', help=f'порядок (по умолчанию {DEFAULT_ORDER})')

    p_uni = sub.add_parser('uniformity', parents=[common], help='проверка равномерности χ²')
    p_uni.add_argument('size', nargs='?', help='порядок 2..4 (по умолчанию 3)')
    p_uni.add_argument('--trials', type=int, default=1200, help='число испытаний')
    return parser


def main(argv: list[str] | None = None) -> int:
    argv = list(sys.argv[1:] if argv is None else argv)
    # `latinwalk 5` ≡ `latinwalk random 5`
    if not argv or argv[0] not in _COMMANDS and argv[0] not in ('-h', '--help'):
        argv.insert(0, 'random')

    args = _build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else LOG_LEVEL,
                        format='%(levelname)s %(name)s: %(message)s')
    try:
        _COMMANDS[args.cmd](args)
    except InvalidOrderError as e:
        print(f"Ошибка: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == '__main__':
    sys.exit(main())
