"""Тесты для latinwalk — блуждание Якобсона–Мэтьюза и проекция в квадрат."""
import sys
import os
import io
import json
import random
import importlib
import unittest
from unittest.mock import patch
from contextlib import redirect_stdout, redirect_stderr
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from libs.latincore.latincore import (
    Axis, CellState, Coordinate, ImproperAt, IncidenceCube, InvalidOrderError,
    InvariantViolation, build_cyclic,
)
import projects.latinwalk.latinwalk as latinwalk_module
from projects.latinwalk.latinwalk import (
    LatinSquare, is_latin, render, project, move_step, randomize, generate,
    main, DEFAULT_ORDER,
)

ORDER_TWO = {((0, 1), (1, 0)), ((1, 0), (0, 1))}


def _improper_cells(cube):
    return [c for c, v in cube.cells() if v is CellState.IMPROPER]


def _first_improper(n=4, seed=0):
    """Куб сразу после первого шага, оставившего ячейку IMPROPER."""
    cube = build_cyclic(n, random.Random(seed))
    for _ in range(100):
        move_step(cube)
        if not cube.is_proper():
            return cube
    raise AssertionError("за 100 шагов куб ни разу не стал неправильным")


class TestLatinSquare(unittest.TestCase):
    def test_cyclic_three(self):
        self.assertEqual(LatinSquare.cyclic(3).rows, [[0, 1, 2], [1, 2, 0], [2, 0, 1]])

    def test_cyclic_is_latin(self):
        for n in range(2, 9):
            self.assertTrue(LatinSquare.cyclic(n).is_latin())

    def test_cyclic_rejects_order(self):
        with self.assertRaises(InvalidOrderError):
            LatinSquare.cyclic(1)

    def test_empty_not_latin(self):
        sq = LatinSquare.empty(3)
        self.assertEqual(sq.rows, [[0, 0, 0]] * 3)
        self.assertFalse(sq.is_latin())

    def test_is_latin_rejects(self):
        self.assertFalse(is_latin([]))
        self.assertFalse(is_latin([[0, 1], [0, 1]]))        # столбцы
        self.assertFalse(is_latin([[0, 0], [1, 1]]))        # строки
        self.assertFalse(is_latin([[0, 1, 2], [1, 2, 0]]))  # не квадрат
        self.assertFalse(is_latin([[1, 2], [2, 1]]))        # символы не 0..n-1

    def test_render_format(self):
        text = render(LatinSquare.cyclic(3))
        self.assertEqual(text, "Латинский квадрат порядка 3\n\n"
                               "0   1   2\n\n1   2   0\n\n2   0   1")

    def test_str_is_render(self):
        sq = LatinSquare.cyclic(2)
        self.assertEqual(str(sq), render(sq))

    def test_to_dict(self):
        d = LatinSquare.cyclic(2).to_dict()
        self.assertEqual(d, {'order': 2, 'rows': [[0, 1], [1, 0]], 'latin': True})


class TestProject(unittest.TestCase):
    def test_cyclic_projection(self):
        for n in range(2, 7):
            self.assertEqual(project(build_cyclic(n)).rows, LatinSquare.cyclic(n).rows)

    def test_improper_cube_rejected(self):
        cube = _first_improper()
        with self.assertRaises(InvariantViolation):
            project(cube)

    def test_blank_grid_rejected(self):
        """IncidenceCube(n) — пустая заготовка, а не правильный куб."""
        cube = IncidenceCube(3)
        self.assertEqual(cube.on_count(), 0)
        self.assertEqual(cube.weighted_total(), 0)
        with self.assertRaises(InvariantViolation):
            project(cube)

    def test_broken_line_rejected(self):
        cube = build_cyclic(3)
        cube[Coordinate(0, 0, 1)] = CellState.ON
        with self.assertRaises(InvariantViolation):
            project(cube)


class TestMoveStep(unittest.TestCase):
    def test_invariants_every_step(self):
        """Суммы по прямым = 1, Σ = n², не более одной IMPROPER-ячейки."""
        n = 4
        cube = build_cyclic(n, random.Random(2024))
        for step in range(300):
            move_step(cube)
            improper = _improper_cells(cube)
            self.assertLessEqual(len(improper), 1, f"шаг {step}")
            self.assertEqual(cube.weighted_total(), n * n)
            if cube.is_proper():
                self.assertEqual(improper, [])
                self.assertEqual(cube.on_count(), n * n)
            else:
                self.assertEqual(improper, [cube.improper_cell])
                self.assertEqual(cube.on_count(), n * n + 1)
            for a in range(n):
                for b in range(n):
                    self.assertEqual(cube.line_sum(Coordinate(0, a, b), Axis.X), 1)
                    self.assertEqual(cube.line_sum(Coordinate(a, 0, b), Axis.Y), 1)
                    self.assertEqual(cube.line_sum(Coordinate(a, b, 0), Axis.Z), 1)

    def test_counts_moves(self):
        cube = build_cyclic(3, random.Random(1))
        for _ in range(5):
            move_step(cube)
        self.assertEqual(cube.moves, 5)

    def test_state_matches_cube(self):
        cube = _first_improper(seed=3)
        self.assertIsInstance(cube.state, ImproperAt)
        self.assertIs(cube[cube.improper_cell], CellState.IMPROPER)

    def test_improper_origin_resolved(self):
        """Шаг из неправильного куба начинается в ячейке IMPROPER и поднимает её."""
        cube = _first_improper(seed=9)
        flaw = cube.improper_cell
        move_step(cube)
        self.assertIs(cube[flaw], CellState.OFF)
        self.assertNotEqual(cube.improper_cell, flaw)

    def test_order_two_flips(self):
        """n = 2: каждый шаг переводит квадрат в другой квадрат порядка 2."""
        cube = build_cyclic(2, random.Random(0))
        move_step(cube)
        self.assertTrue(cube.is_proper())
        self.assertEqual(project(cube).rows, [[1, 0], [0, 1]])


class TestRandomize(unittest.TestCase):
    def test_latin_for_small_orders(self):
        for n in range(2, 8):
            cube = build_cyclic(n, random.Random(n))
            randomize(cube)
            self.assertTrue(cube.is_proper())
            self.assertIsNone(cube.improper_cell)
            self.assertTrue(project(cube).is_latin(), f"n = {n}")

    def test_returns_none(self):
        self.assertIsNone(randomize(build_cyclic(3, random.Random(0))))

    def test_mixing_count(self):
        cube = build_cyclic(4, random.Random(0))
        randomize(cube)
        self.assertGreaterEqual(cube.moves, 4 ** 3)

    def test_cleanup_is_short(self):
        worst = 0
        for seed in range(100):
            cube = build_cyclic(4, random.Random(seed))
            randomize(cube)
            worst = max(worst, cube.moves - 4 ** 3)
        self.assertLess(worst, 200)

    def test_changes_square(self):
        squares = {project(_randomized(5, seed)).key() for seed in range(10)}
        self.assertGreater(len(squares), 1)


def _randomized(n, seed):
    cube = build_cyclic(n, random.Random(seed))
    randomize(cube)
    return cube


class TestGenerate(unittest.TestCase):
    def test_latin(self):
        for n in (2, 3, 4, 6, 9):
            sq = generate(n, seed=n)
            self.assertEqual(sq.order, n)
            self.assertTrue(sq.is_latin())

    def test_seed_reproducible(self):
        self.assertEqual(generate(6, seed=42).rows, generate(6, seed=42).rows)

    def test_order_two(self):
        self.assertIn(generate(2, seed=1).key(), ORDER_TWO)

    def test_order_two_parity(self):
        """n = 2: 8 шагов перемешивания чётны, всегда выходит циклический квадрат."""
        for seed in range(5):
            self.assertEqual(generate(2, seed=seed).rows, LatinSquare.cyclic(2).rows)

    def test_rejects_order(self):
        for bad in (0, 1):
            with self.assertRaises(InvalidOrderError):
                generate(bad)


class TestCLI(unittest.TestCase):
    def _run(self, argv):
        out, err = io.StringIO(), io.StringIO()
        with redirect_stdout(out), redirect_stderr(err):
            code = main(argv)
        return code, out.getvalue(), err.getvalue()

    def test_size_argument(self):
        code, out, _ = self._run(['5', '--seed', '1'])
        self.assertEqual(code, 0)
        self.assertTrue(out.startswith("Латинский квадрат порядка 5"))

    def test_default_size(self):
        _, out, _ = self._run([])
        self.assertTrue(out.startswith(f"Латинский квадрат порядка {DEFAULT_ORDER}"))

    def test_unparsable_size(self):
        _, out, _ = self._run(['abc'])
        self.assertTrue(out.startswith(f"Латинский квадрат порядка {DEFAULT_ORDER}"))

    def test_invalid_order(self):
        code, out, err = self._run(['1'])
        self.assertEqual(code, 2)
        self.assertEqual(out, '')
        self.assertIn('Ошибка', err)

    def test_cyclic(self):
        _, out, _ = self._run(['cyclic', '3'])
        self.assertEqual(out, render(LatinSquare.cyclic(3)) + '\n')

    def test_cyclic_word_is_subcommand(self):
        """`latinwalk cyclic` — подкоманда, а не неразборчивый размер."""
        _, out, _ = self._run(['cyclic'])
        self.assertEqual(out, render(LatinSquare.cyclic(DEFAULT_ORDER)) + '\n')

    def test_random_json(self):
        _, out, _ = self._run(['random', '4', '--json', '--seed', '5'])
        d = json.loads(out)
        self.assertEqual(d['order'], 4)
        self.assertTrue(d['latin'])
        self.assertTrue(is_latin(d['rows']))

    def test_cube(self):
        _, out, _ = self._run(['cube', '3', '--seed', '0'])
        self.assertIn("z = 0", out)
        self.assertIn("z = 2", out)

    def test_cube_json(self):
        _, out, _ = self._run(['cube', '2', '--seed', '0', '--json'])
        d = json.loads(out)
        self.assertEqual(len(d['layers']), 2)
        self.assertEqual(sum(v for layer in d['layers'] for row in layer for v in row), 4)

    def test_uniformity_json(self):
        _, out, _ = self._run(['uniformity', '3', '--trials', '24', '--seed', '1', '--json'])
        d = json.loads(out)
        self.assertEqual(d['squares'], 12)
        self.assertEqual(d['trials'], 24)


class TestEnvironmentConfig(unittest.TestCase):
    """Испорченные переменные окружения не ломают импорт и CLI."""

    def tearDown(self):
        importlib.reload(latinwalk_module)

    def test_garbage_env_falls_back(self):
        env = {'LATINWALK_DEFAULT_ORDER': 'abc', 'LATINWALK_LOG_LEVEL': 'LOUD'}
        with patch.dict(os.environ, env):
            module = importlib.reload(latinwalk_module)
            self.assertEqual(module.DEFAULT_ORDER, 4)
            self.assertEqual(module.LOG_LEVEL, 'WARNING')
            out, err = io.StringIO(), io.StringIO()
            with redirect_stdout(out), redirect_stderr(err):
                code = module.main([])
        self.assertEqual(code, 0)
        self.assertTrue(out.getvalue().startswith("Латинский квадрат порядка 4"))

    def test_valid_env_used(self):
        env = {'LATINWALK_DEFAULT_ORDER': '3', 'LATINWALK_LOG_LEVEL': 'debug'}
        with patch.dict(os.environ, env):
            module = importlib.reload(latinwalk_module)
        self.assertEqual(module.DEFAULT_ORDER, 3)
        self.assertEqual(module.LOG_LEVEL, 'DEBUG')


if __name__ == '__main__':
    unittest.main()
