"""
Slot binding tests (coercion, defaults, assignment, required files).

Scope
- Validate per-type coercion and the zero defaults.
- Validate that boolean options consume nothing while boolean positionals parse.
- Validate parse faults and the fatal missing-file exit.

Conventions
- Test method names follow CamelCase per project convention.
- Console output is captured through a StringIO-backed rich Console.
"""

import io
import os.path
import tempfile
import unittest
from pathlib import Path
from types import SimpleNamespace
from unittest import TestCase
from unittest.mock import patch

from rich.console import Console

from argtree import (
    SlotBinding,
    SlotKind,
    TokenQueue,
    ValueType,
    attribute,
    fetch,
    index,
    zero,
)
from argtree import faults
from argtree.faults import (
    ConfigurationError,
    InvalidValueError,
    MissingValueError,
    ParseError,
    SlotAccessError,
)


def capture():
    return Console(file=io.StringIO(), color_system=None, width=120)


class TestCoercion(TestCase):
    """Value types, zero defaults and token coercion."""

    def testZeroDefaults(self):
        self.assertEqual(zero(ValueType.INT), 0)
        self.assertEqual(zero(ValueType.LONG), 0)
        self.assertEqual(zero(ValueType.DOUBLE), 0.0)
        self.assertEqual(zero(ValueType.FLOAT), 0.0)
        self.assertEqual(zero(ValueType.STRING), "")
        self.assertIs(zero(ValueType.BOOL), False)
        self.assertIsNone(zero(ValueType.FILEPATH))

    def testValueTypeOfAnnotations(self):
        self.assertIs(ValueType.of(int), ValueType.INT)
        self.assertIs(ValueType.of(bool), ValueType.BOOL)
        self.assertIs(ValueType.of(float), ValueType.DOUBLE)
        self.assertIs(ValueType.of(str | None), ValueType.STRING)
        self.assertIs(ValueType.of(Path), ValueType.FILEPATH)
        self.assertIs(ValueType.of(ValueType.LONG), ValueType.LONG)

    def testUnsupportedAnnotationRejected(self):
        with self.assertRaises(ConfigurationError):
            ValueType.of(list)

    def testIntegerOptionConsumesOneToken(self):
        state = SimpleNamespace(port=0)
        queue = TokenQueue(["8080", "start"])
        SlotBinding("port", attribute("port"), type=int)(queue, state)
        self.assertEqual(state.port, 8080)
        self.assertEqual(queue.peek(), "start")

    def testBooleanOptionConsumesNothing(self):
        state = SimpleNamespace(verbose=False)
        queue = TokenQueue(["build"])
        SlotBinding("verbose", attribute("verbose"), type=bool)(queue, state)
        self.assertIs(state.verbose, True)
        self.assertEqual(queue.peek(), "build")

    def testBooleanPositionalParsesToken(self):
        binding = SlotBinding("enabled", index(0), kind=SlotKind.POSITIONAL, type=bool)
        values = [False]
        binding(TokenQueue(["TRUE"]), values)
        self.assertEqual(values, [True])
        binding(TokenQueue(["yes"]), values)
        self.assertEqual(values, [False])

    def testMalformedIntegerRaisesParseError(self):
        binding = SlotBinding("port", attribute("port"), type=int)
        with self.assertRaises(InvalidValueError) as context:
            binding(TokenQueue(["eighty"]), SimpleNamespace(port=0))
        self.assertIsInstance(context.exception, ParseError)
        self.assertIn("'eighty'", str(context.exception))

    def testIntegerRangeDependsOnWidth(self):
        with self.assertRaises(InvalidValueError):
            SlotBinding("size", index(0), type=ValueType.INT).consume(TokenQueue([str(2 ** 31)]))
        value = SlotBinding("size", index(0), type=ValueType.LONG).consume(TokenQueue([str(2 ** 31)]))
        self.assertEqual(value, 2 ** 31)

    def testFloatNarrowedToSinglePrecision(self):
        single = SlotBinding("ratio", index(0), type=ValueType.FLOAT).consume(TokenQueue(["0.1"]))
        double = SlotBinding("ratio", index(0), type=float).consume(TokenQueue(["0.1"]))
        self.assertEqual(double, 0.1)
        self.assertNotEqual(single, 0.1)
        self.assertAlmostEqual(single, 0.1, places=7)

    def testMissingValueRaises(self):
        binding = SlotBinding("name", attribute("name"), type=str)
        with self.assertRaises(MissingValueError):
            binding(TokenQueue(), SimpleNamespace(name=""))


class TestSlotBinding(TestCase):
    """Binding metadata and state access."""

    def testShortcutDefaultsToFirstCharacter(self):
        self.assertEqual(SlotBinding("verbose", attribute("verbose"), type=bool).shortcut, "v")
        self.assertIsNone(SlotBinding("verbose", attribute("verbose"), shortcut=None, type=bool).shortcut)
        self.assertIsNone(SlotBinding("name", index(0), kind=SlotKind.POSITIONAL).shortcut)

    def testDefaultFallsBackToZero(self):
        self.assertEqual(SlotBinding("count", index(0), type=int).default, 0)
        self.assertEqual(SlotBinding("count", index(0), type=int, default=5).default, 5)

    def testMalformedShortcutRejected(self):
        with self.assertRaises(TypeError):
            SlotBinding("verbose", attribute("verbose"), shortcut="vv", type=bool)

    def testMustExistRequiresFileType(self):
        with self.assertRaises(TypeError):
            SlotBinding("name", attribute("name"), type=str, must_exist=True)

    def testUnwritableStateRaisesSlotAccessError(self):
        with self.assertRaises(SlotAccessError):
            SlotBinding("port", attribute("port"), type=int)(TokenQueue(["1"]), object())

    def testUnreadableStateRaisesSlotAccessError(self):
        with self.assertRaises(SlotAccessError):
            fetch("server")(SimpleNamespace())

    def testExistingFileAccepted(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "config.toml")
            with open(path, "w") as file:
                file.write("")
            state = SimpleNamespace(config=None)
            SlotBinding("config", attribute("config"), type=Path, must_exist=True)(TokenQueue([path]), state)
            self.assertEqual(state.config, Path(path))

    def testMissingRequiredFileExits(self):
        console = capture()
        with tempfile.TemporaryDirectory() as directory, patch.object(faults, "console", console):
            missing = os.path.join(directory, "absent.toml")
            binding = SlotBinding("config", attribute("config"), type=Path, must_exist=True)
            with self.assertRaises(SystemExit) as context:
                binding(TokenQueue([missing]), SimpleNamespace(config=None))
        self.assertEqual(context.exception.code, 1)
        self.assertIn("file does not exist", console.file.getvalue())

    def testMissingOptionalFileAccepted(self):
        state = SimpleNamespace(config=None)
        SlotBinding("config", attribute("config"), type=Path)(TokenQueue(["nowhere.toml"]), state)
        self.assertEqual(state.config, Path("nowhere.toml"))


if __name__ == "__main__":
    unittest.main()
