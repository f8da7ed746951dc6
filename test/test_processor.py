"""
Processor dispatch tests (options, clusters, commands, help, shell entry).

Scope
- Validate that long and short spellings of an option are interchangeable.
- Validate short-cluster consumption order and command exclusivity.
- Validate the default handler, unknown-option reporting and parse faults.
- Validate the built-in help listing and the --shell / -$ option.

Conventions
- Test method names follow CamelCase per project convention.
- Processors are assembled by hand through the low-level API
  (add_option/add_command/set_default); schema-driven trees live in
  test_builder.
"""

import io
import unittest
from types import SimpleNamespace
from unittest import TestCase
from unittest.mock import patch

from rich.console import Console

from argtree import (
    ChildProcessor,
    CommandProcessor,
    LeafAction,
    SlotBinding,
    attribute,
    fetch,
    greedy,
)
from argtree import faults
from argtree.faults import ConfigurationError, InvalidValueError, MissingValueError


def capture():
    return Console(file=io.StringIO(), color_system=None, width=120)


def lines(console):
    return [line.rstrip() for line in console.file.getvalue().splitlines()]


def tool(*args, **options):
    processor = CommandProcessor(*args, name="tool", console=capture(), **options)
    processor.add_option("port", "p", SlotBinding("port", attribute("port"), type=int))
    processor.add_option("count", "n", SlotBinding("count", attribute("count"), type=int))
    processor.add_option("verbose", "v", SlotBinding("verbose", attribute("verbose"), type=bool))
    processor.add_option("name", None, SlotBinding("name", attribute("name"), shortcut=None, type=str))
    return processor


def state():
    return SimpleNamespace(port=0, count=0, verbose=False, name="")


class TestOptionDispatch(TestCase):
    """Option tokens in long, short and clustered form."""

    def testLongAndShortFormsAreEquivalent(self):
        long, short = state(), state()
        tool().process(["--port", "8080"], long)
        tool().process(["-p", "8080"], short)
        self.assertEqual(long, short)
        self.assertEqual(long.port, 8080)

    def testShortClusterConsumesAfterClusterInOrder(self):
        target = state()
        tool().process(["-vpn", "80", "3"], target)
        self.assertIs(target.verbose, True)
        self.assertEqual(target.port, 80)
        self.assertEqual(target.count, 3)

    def testStringInputIsShellSplit(self):
        target = state()
        tool().process('--name "a b" -v', target)
        self.assertEqual(target.name, "a b")
        self.assertIs(target.verbose, True)

    def testUnknownLongOptionReportedAndSkipped(self):
        console = capture()
        target = state()
        with patch.object(faults, "console", console):
            tool().process(["--prot", "-v"], target)
        self.assertIs(target.verbose, True)
        output = console.file.getvalue()
        self.assertIn("unknown option '--prot'", output)
        self.assertIn("did you mean 'port'?", output)

    def testUnknownShortOptionReportedAndSkipped(self):
        console = capture()
        target = state()
        with patch.object(faults, "console", console):
            tool().process(["-xv"], target)
        self.assertIs(target.verbose, True)
        self.assertIn("unknown option '-x'", console.file.getvalue())

    def testParseErrorPropagates(self):
        with self.assertRaises(InvalidValueError):
            tool().process(["--port", "eighty"], state())

    def testMissingValuePropagates(self):
        with self.assertRaises(MissingValueError):
            tool().process(["--port"], state())

    def testDuplicateKeyRejected(self):
        processor = tool()
        with self.assertRaises(ConfigurationError):
            processor.add_option("port", None, SlotBinding("port", attribute("port"), type=int))

    def testDuplicateShortcutRejected(self):
        processor = tool()
        with self.assertRaises(ConfigurationError):
            processor.add_option("pages", "p", SlotBinding("pages", attribute("pages"), type=int))

    def testDerivedShortcutYieldsToBoundOne(self):
        processor = tool()
        processor.add_option("pages", "p", SlotBinding("pages", attribute("pages"), type=int), derived=True)
        self.assertEqual(processor.shortcuts["p"], "port")
        self.assertIsNone(processor._options.shortcut("pages"))

    def testExplicitShortcutTakesOverDerivedOne(self):
        processor = CommandProcessor(name="tool", console=capture())
        processor.add_option("verbose", "v", SlotBinding("verbose", attribute("verbose"), type=bool), derived=True)
        processor.add_option("version", "v", SlotBinding("version", attribute("version"), type=bool))
        self.assertEqual(processor.shortcuts, {"v": "version"})


class TestCommandDispatch(TestCase):
    """Command words, the default handler and nested processors."""

    def testCommandDispatchIsExclusive(self):
        calls = []
        processor = tool()
        processor.add_command("first", lambda queue, target: calls.append(("first", queue.peek())))
        processor.add_command("second", lambda queue, target: calls.append(("second", queue.peek())))
        processor.process(["first", "second"], state())
        self.assertEqual(calls, [("first", "second")])

    def testResidualTokensReachCommand(self):
        received = []
        processor = tool()
        processor.add_command("build", greedy(lambda args, target: received.append((target.verbose, args))))
        target = state()
        processor.process(["--verbose", "build", "--target", "release"], target)
        self.assertEqual(received, [(True, ["--target", "release"])])

    def testUnmatchedBareTokenRunsDefault(self):
        received = []
        processor = tool()
        processor.set_default(lambda queue, target: received.append(queue.drain()))
        target = state()
        processor.process(["-v", "stray", "--port", "1"], target)
        self.assertIs(target.verbose, True)
        self.assertEqual(target.port, 0)
        self.assertEqual(received, [["stray", "--port", "1"]])

    def testDefaultSkippedWhenCommandRuns(self):
        received = []
        processor = tool()
        processor.set_default(lambda queue, target: received.append("default"))
        processor.add_command("build", lambda queue, target: received.append("build"))
        processor.process(["build"], state())
        self.assertEqual(received, ["build"])

    def testChildProcessorBindsBeforeLeafRuns(self):
        seen = []
        child = CommandProcessor(name="server", console=capture())
        child.add_option("port", "p", SlotBinding("port", attribute("port"), type=int))
        child.add_command("start", LeafAction(lambda queue, inner: seen.append(inner.port)))

        root = tool()
        root.add_command("server", ChildProcessor(child, fetch("server")))

        target = state()
        target.server = SimpleNamespace(port=0)
        root.process(["server", "--port", "8080", "start"], target)
        self.assertEqual(seen, [8080])
        self.assertEqual(target.port, 0)


class TestHelp(TestCase):
    """The built-in help listing."""

    def testHelpListsOptionsAndCommands(self):
        processor = tool()
        processor.add_command("build", lambda queue, target: None)
        processor.process(["help"], state())
        self.assertEqual(lines(processor.console), [
            "usage: tool [options] <command> <args>",
            "",
            "options:",
            "  -p, --port",
            "  -n, --count",
            "  -v, --verbose",
            "      --name",
            "",
            "commands:",
            "  help",
            "  build",
        ])

    def testHelpIsIdempotentAndLeavesTablesUntouched(self):
        processor = tool()
        before = (processor.options.keys(), processor.shortcuts, processor.commands.keys())
        processor.process(["help"], state())
        first = processor.console.file.getvalue()
        processor.process(["help"], state())
        self.assertEqual(processor.console.file.getvalue(), first * 2)
        after = (processor.options.keys(), processor.shortcuts, processor.commands.keys())
        self.assertEqual(before, after)

    def testHelpCannotBeReplaced(self):
        with self.assertRaises(ConfigurationError):
            tool().add_command("help", lambda queue, target: None)

    def testStrictHelpExitsWithZero(self):
        with self.assertRaises(SystemExit) as context:
            tool(strict=True).process(["help"], state())
        self.assertEqual(context.exception.code, 0)


class TestShellEntry(TestCase):
    """When process() hands over to the shell."""

    def testShellRunsWhenNoCommandDispatched(self):
        processor = tool("tool", stdin=io.StringIO(""))
        processor.process([], state())
        self.assertIn("tool>> ", processor.console.file.getvalue())

    def testShellSkippedAfterCommandByDefault(self):
        ran = []
        processor = tool("tool", stdin=io.StringIO(""))
        processor.add_command("build", lambda queue, target: ran.append("build"))
        processor.process(["build"], state())
        self.assertEqual(ran, ["build"])
        self.assertNotIn("tool>> ", processor.console.file.getvalue())

    def testShellOptionEntersShellAfterCommand(self):
        ran = []
        processor = tool("tool", stdin=io.StringIO(""))
        processor.add_command("build", lambda queue, target: ran.append("build"))
        processor.process(["-$", "build"], state())
        self.assertEqual(ran, ["build"])
        self.assertIn("tool>> ", processor.console.file.getvalue())

    def testShellOptionClearedWhenScanFails(self):
        ran = []
        processor = tool("tool", stdin=io.StringIO(""))
        processor.add_command("build", lambda queue, target: ran.append("build"))
        with self.assertRaises(InvalidValueError):
            processor.process(["-$", "--port", "x"], state())
        processor.process(["build"], state())
        self.assertEqual(ran, ["build"])
        self.assertNotIn("tool>> ", processor.console.file.getvalue())

    def testShellOptionOnlyWithPrompt(self):
        self.assertIn("shell", tool("tool").options)
        self.assertNotIn("shell", tool().options)


if __name__ == "__main__":
    unittest.main()
