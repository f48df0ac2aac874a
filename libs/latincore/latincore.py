"""
latincore — ядро: куб инцидентности латинского квадрата

Латинский квадрат порядка n кодируется кубом n×n×n:
  куб[x][y][z] = ON  ⟺  в строке x, столбце y стоит символ z.

Правильный (proper) куб: на каждой прямой (две координаты фиксированы,
третья пробегает 0..n-1) ровно одна ячейка ON. Всего ON-ячеек n².

Во время блуждания Якобсона–Мэтьюза куб может временно содержать
ровно одну ячейку IMPROPER («−1»). Тогда куб неправильный, и следующий
шаг обязан начинаться с этой ячейки.

Соглашения:
  - CellState.as_int(): ON = 1, OFF = 0, IMPROPER = −1
  - сумма as_int по любой прямой всегда равна 1
  - сумма as_int по всему кубу всегда равна n²
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace
from enum import Enum
from typing import Iterator

MIN_ORDER = 2


# ---------------------------------------------------------------------------
# Ошибки
# ---------------------------------------------------------------------------

class LatinError(Exception):
    pass


class InvalidOrderError(LatinError, ValueError):
    """Порядок квадрата вне допустимого диапазона (n < 2)."""


class InvariantViolation(LatinError):
    """Нарушен инвариант куба: ошибка в логике блуждания, не во входных данных."""


def check_order(order) -> int:
    """Проверить порядок квадрата. Возвращает его же или бросает InvalidOrderError."""
    if isinstance(order, bool) or not isinstance(order, int):
        raise InvalidOrderError(f"Порядок должен быть целым числом, получено {order!r}")
    if order < MIN_ORDER:
        raise InvalidOrderError(f"Порядок должен быть ≥ {MIN_ORDER}, получено {order}")
    return order


# ---------------------------------------------------------------------------
# Состояние ячейки
# ---------------------------------------------------------------------------

class CellState(Enum):
    IMPROPER = -1
    OFF = 0
    ON = 1

    def as_int(self) -> int:
        return self.value

    def lower(self) -> CellState:
        """ON → OFF → IMPROPER. Понизить IMPROPER нельзя."""
        if self is CellState.IMPROPER:
            raise InvariantViolation("Нельзя понизить ячейку IMPROPER")
        return CellState(self.value - 1)

    def higher(self) -> CellState:
        """IMPROPER → OFF → ON. Повысить ON нельзя."""
        if self is CellState.ON:
            raise InvariantViolation("Нельзя повысить ячейку, которая уже ON")
        return CellState(self.value + 1)

    def symbol(self) -> str:
        return {CellState.ON: ' 1', CellState.OFF: ' 0', CellState.IMPROPER: '-1'}[self]


# ---------------------------------------------------------------------------
# Оси и координаты
# ---------------------------------------------------------------------------

class Axis(Enum):
    X = 'x'
    Y = 'y'
    Z = 'z'


@dataclass(frozen=True)
class Coordinate:
    x: int
    y: int
    z: int

    def along(self, axis: Axis) -> int:
        """Значение координаты по оси axis."""
        return getattr(self, axis.value)

    def with_axis(self, axis: Axis, value: int) -> Coordinate:
        return replace(self, **{axis.value: value})

    def increment(self, axis: Axis) -> Coordinate:
        """Сдвиг на единицу вдоль оси axis (новая координата)."""
        return self.with_axis(axis, self.along(axis) + 1)

    @classmethod
    def for_search(cls, x: int, y: int, z: int, axis: Axis) -> Coordinate:
        """Начальная точка поиска: координата по оси axis обнуляется."""
        return cls(x, y, z).with_axis(axis, 0)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)


# ---------------------------------------------------------------------------
# Состояние куба: правильный / неправильный в точке
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Proper:
    pass


@dataclass(frozen=True)
class ImproperAt:
    cell: Coordinate


PROPER = Proper()


# ---------------------------------------------------------------------------
# Куб инцидентности
# ---------------------------------------------------------------------------

class IncidenceCube:
    """Куб n×n×n из CellState плюс состояние PROPER / ImproperAt(cell).

    Куб владеет своим генератором случайных чисел (random.Random):
    два куба делят генератор, только если его передали явно.
    """

    def __init__(self, order: int, rng: random.Random | None = None) -> None:
        """Пустая заготовка: все ячейки OFF, это НЕ правильный куб.

        Тег state здесь не описывает ячейки; его смысл появляется после
        заполнения (new_cyclic / build_cyclic). project и pick_coordinate
        на пустой заготовке бросают InvariantViolation.
        """
        self.order: int = check_order(order)
        self.rng: random.Random = rng if rng is not None else random.Random()
        self.state: Proper | ImproperAt = PROPER
        self.moves: int = 0     # число выполненных шагов блуждания
        self._cells: list[list[list[CellState]]] = [
            [[CellState.OFF] * order for _ in range(order)] for _ in range(order)
        ]

    @classmethod
    def new_cyclic(cls, order: int, rng: random.Random | None = None) -> IncidenceCube:
        """Циклический квадрат: ON ⟺ z = (x + y) mod n. Всегда правильный."""
        cube = cls(order, rng)
        for x in range(order):
            for y in range(order):
                cube._cells[x][y][(x + y) % order] = CellState.ON
        return cube

    # --- доступ к ячейкам ---------------------------------------------------

    def _check(self, c: Coordinate) -> None:
        n = self.order
        if not (0 <= c.x < n and 0 <= c.y < n and 0 <= c.z < n):
            raise InvariantViolation(f"Координата {c.as_tuple()} вне куба порядка {n}")

    def __getitem__(self, c: Coordinate) -> CellState:
        self._check(c)
        return self._cells[c.x][c.y][c.z]

    def __setitem__(self, c: Coordinate, value: CellState) -> None:
        self._check(c)
        self._cells[c.x][c.y][c.z] = value

    def raise_cell(self, c: Coordinate) -> None:
        self[c] = self[c].higher()

    def lower_cell(self, c: Coordinate) -> None:
        self[c] = self[c].lower()

    def cells(self) -> Iterator[tuple[Coordinate, CellState]]:
        """Все ячейки куба в порядке x, y, z."""
        for x, plane in enumerate(self._cells):
            for y, line in enumerate(plane):
                for z, value in enumerate(line):
                    yield Coordinate(x, y, z), value

    # --- состояние ----------------------------------------------------------

    @property
    def improper_cell(self) -> Coordinate | None:
        if isinstance(self.state, ImproperAt):
            return self.state.cell
        return None

    def is_proper(self) -> bool:
        return isinstance(self.state, Proper)

    def on_count(self) -> int:
        return sum(1 for _, v in self.cells() if v is CellState.ON)

    def weighted_total(self) -> int:
        """Σ as_int по всему кубу. Инвариант: всегда n²."""
        return sum(v.as_int() for _, v in self.cells())

    def line(self, fixed: Coordinate, axis: Axis) -> list[CellState]:
        """Прямая через fixed вдоль оси axis."""
        start = Coordinate.for_search(fixed.x, fixed.y, fixed.z, axis)
        return [self[start.with_axis(axis, i)] for i in range(self.order)]

    def line_sum(self, fixed: Coordinate, axis: Axis) -> int:
        """Σ as_int вдоль прямой. Инвариант: всегда 1."""
        return sum(v.as_int() for v in self.line(fixed, axis))

    def copy(self) -> IncidenceCube:
        """Копия ячеек и состояния; генератор общий с оригиналом."""
        other = IncidenceCube(self.order, self.rng)
        other._cells = [[list(line) for line in plane] for plane in self._cells]
        other.state = self.state
        other.moves = self.moves
        return other

    # --- случайная OFF-ячейка -----------------------------------------------

    def sample_off_cell(self) -> Coordinate:
        """Равномерно случайная OFF-ячейка (выборка с отклонением).

        OFF-ячеек (n³ − n²) из n³, так что повторов в среднем мало.
        Если за n³ попыток OFF не нашлась, куб проверяется целиком.
        """
        n = self.order
        rng = self.rng
        misses = 0
        while True:
            x, y, z = rng.randrange(n), rng.randrange(n), rng.randrange(n)
            if self._cells[x][y][z] is CellState.OFF:
                return Coordinate(x, y, z)
            misses += 1
            if misses == n ** 3 and not any(v is CellState.OFF for _, v in self.cells()):
                raise InvariantViolation("В кубе нет ни одной OFF-ячейки")

    # --- поиск вдоль оси ----------------------------------------------------

    def find_on_along_axis(self, start: Coordinate, axis: Axis) -> int | None:
        """Первая ON-ячейка вдоль axis, начиная со start (включительно).

        Возвращает значение координаты по оси axis или None, если до границы
        куба ON-ячеек нет.
        """
        pos = start
        while pos.along(axis) < self.order:
            if self[pos] is CellState.ON:
                return pos.along(axis)
            pos = pos.increment(axis)
        return None

    def pick_coordinate(self, x: int, y: int, z: int, axis: Axis,
                        take_first: bool | None = None) -> int:
        """Координата ON-ячейки на прямой через (x, y, z) вдоль оси axis.

        take_first=True  — первая ON-ячейка прямой;
        take_first=False — вторая (строго дальше первой);
        take_first=None  — первая или вторая с вероятностью 1/2.
        Значение аргумента по оси axis игнорируется.
        """
        start = Coordinate.for_search(x, y, z, axis)
        if take_first is None:
            take_first = self.rng.random() < 0.5

        first = self.find_on_along_axis(start, axis)
        if first is None:
            raise InvariantViolation(
                f"Нет ON-ячейки на прямой через {start.as_tuple()} вдоль {axis.value}")
        if take_first:
            return first

        second = self.find_on_along_axis(start.with_axis(axis, first + 1), axis)
        if second is None:
            raise InvariantViolation(
                f"Нет второй ON-ячейки на прямой через {start.as_tuple()} "
                f"вдоль {axis.value}")
        return second

    def __repr__(self) -> str:
        state = 'proper' if self.is_proper() else f'improper at {self.improper_cell.as_tuple()}'
        return f"IncidenceCube(order={self.order}, {state}, moves={self.moves})"


def build_cyclic(order: int, rng: random.Random | None = None) -> IncidenceCube:
    """Стартовый куб для блуждания (циклический латинский квадрат)."""
    return IncidenceCube.new_cyclic(order, rng)


# ---------------------------------------------------------------------------
# Отрисовка
# ---------------------------------------------------------------------------

def render_cube(cube: IncidenceCube) -> str:
    """Куб по слоям z: в каждом слое строки x, столбцы y, значения −1/0/1."""
    n = cube.order
    blocks = []
    for z in range(n):
        lines = [f"z = {z}"]
        for x in range(n):
            lines.append(' '.join(cube[Coordinate(x, y, z)].symbol() for y in range(n)))
        blocks.append('\n'.join(lines))
    return '\n\n'.join(blocks)
