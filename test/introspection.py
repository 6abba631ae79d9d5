"""
Introspection behavioral tests (describe, Entry snapshots, navigation).

Scope
- Validate that describe() records every node without matching or running.
- Validate lazy expansion of sub-trees and loop trees, recursive trees included.
- Validate names(), locate() and route() navigation over a snapshot.
- Validate the shadowed-command warning for a misplaced otherwise().

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (describe, execute, Entry, Constraint).
"""
import io
import unittest
import warnings
from unittest import TestCase
from unittest.mock import patch

from rich.console import Console

from conso import describe, execute, either, Constraint, Match, Entry, ControlFlow, IntrospectCtx
from conso import faults
from conso.faults import ShadowedCommandWarning, FaultCode
from conso.rendering import signature


class Spy(Constraint):
    """
    Exact-like constraint counting how often it is matched.
    """

    def __init__(self, literal, counter):
        self._literal = literal
        self._counter = counter

    def match(self, tokens, /):
        self._counter.append(tuple(tokens))
        if tokens and tokens[0] == self._literal:
            return Match(1, None)
        return None

    def usage(self):
        return self._literal

    def literals(self):
        return (self._literal,)


def walk(entry):
    for child in entry.children:
        yield child
        yield from walk(child)


class TestDescribe(TestCase):
    """describe() builds a side-effect-free snapshot of the tree."""

    def setUp(self):
        self.calls = []
        self.matches = []
        self.expansions = []

        def math(ctx):
            self.expansions.append("math")
            ctx.command(Spy("add", self.matches)) \
                .description("Add two numbers") \
                .arg(int) \
                .arg(int) \
                .run(lambda a, b: self.calls.append(a + b))
            ctx.otherwise().run(lambda: self.calls.append("math"))

        def builder(ctx):
            ctx.command(Spy("multiply", self.matches)) \
                .description("Multiply two small numbers") \
                .constrained_arg(range(0, 100)) \
                .constrained_arg(range(0, 100)) \
                .run(lambda a, b: self.calls.append(a * b))
            ctx.command("math").sub_commands(math)
            ctx.command(either("q", "quit")).run(lambda: self.calls.append("quit"))

        self.builder = builder

    def testRootEntry(self):
        root = describe(self.builder)
        self.assertIsInstance(root, Entry)
        self.assertIsNone(root.constraint)
        self.assertFalse(root.runnable)

    def testRecordsEveryNode(self):
        root = describe(self.builder)
        self.assertEqual(
            [signature(entry) for entry in root.children],
            ["multiply <number 0..100> <number 0..100>", "math", "[q|quit]"]
        )
        self.assertEqual(root.children[0].description, "Multiply two small numbers")
        self.assertTrue(root.children[0].runnable)
        self.assertFalse(root.children[1].runnable)

    def testNeverRunsHandlersNorMatches(self):
        entries = list(walk(describe(self.builder)))
        self.assertEqual(len(entries), 5)
        self.assertEqual(self.calls, [])
        self.assertEqual(self.matches, [])

    def testChildrenAreExpandedLazily(self):
        root = describe(self.builder)
        math = root.children[1]
        self.assertEqual(self.expansions, [])
        self.assertEqual([signature(entry) for entry in math.children], ["add <integer> <integer>", "(otherwise)"])
        self.assertEqual(self.expansions, ["math"])
        math.children
        self.assertEqual(self.expansions, ["math"])

    def testNames(self):
        root = describe(self.builder)
        self.assertEqual(root.names(), ("multiply", "math", "q", "quit"))
        self.assertEqual(root.children[1].names(), ("add",))

    def testRecursiveTree(self):
        def builder(ctx):
            ctx.command("again").sub_commands(builder).run(lambda: None)

        entry = describe(builder)
        for _ in range(5):
            entry, = entry.children
        self.assertEqual(signature(entry), "again")

    def testBuilderSeesIntrospectCtx(self):
        seen = []

        def builder(ctx):
            seen.append((type(ctx), ctx.introspecting, ctx.tokens))

        describe(builder).children
        self.assertEqual(seen, [(IntrospectCtx, True, ())])

    def testLoopTreeIsDescribed(self):
        seen = []

        def settings(ctx, flow):
            seen.append(flow)
            ctx.command("back").run(lambda: flow.quit())

        def builder(ctx):
            ctx.command("settings").user_loop(settings)

        settings_entry, = describe(builder).children
        self.assertTrue(settings_entry.looped)
        self.assertTrue(settings_entry.runnable)
        self.assertEqual([signature(entry) for entry in settings_entry.children], ["back"])
        self.assertIsInstance(seen[0], ControlFlow)
        self.assertFalse(seen[0].quitting)

    def testSnapshotMatchesExecution(self):
        # Every runnable leaf of the snapshot is reached by its own name.
        root = describe(self.builder)
        self.assertEqual(self.calls, [])
        execute("quit", self.builder)
        execute("multiply 2 3", self.builder)
        execute("math add 2 3", self.builder)
        execute("math", self.builder)
        self.assertEqual(self.calls, ["quit", 6, 5, "math"])
        self.assertTrue(all(entry.runnable for entry in walk(root) if not entry.children))

    def testBuilderMustBeCallable(self):
        with self.assertRaises(TypeError):
            describe("builder")


class TestNavigation(TestCase):
    """locate() and route() over a snapshot."""

    def setUp(self):
        def remote(ctx):
            ctx.command("add").arg(str).arg(str).run(lambda name, url: None)
            ctx.command("remove").arg(str).run(lambda name: None)

        def builder(ctx):
            ctx.command("remote").sub_commands(remote)
            ctx.command("clone").arg(str).run(lambda url: None)

        self.root = describe(builder)

    def testLocateFullPath(self):
        entry, consumed = self.root.locate(("remote", "add", "origin", "url"))
        self.assertEqual(signature(entry), "add <string> <string>")
        self.assertEqual(consumed, 4)

    def testLocateStopsAtUnknownToken(self):
        entry, consumed = self.root.locate(("remote", "rename"))
        self.assertEqual(signature(entry), "remote")
        self.assertEqual(consumed, 1)

    def testLocatePointsAtFailingArgument(self):
        entry, consumed = self.root.locate(("remote", "add", "origin"))
        self.assertEqual(signature(entry), "add <string> <string>")
        self.assertEqual(consumed, 3)

    def testLocateEmpty(self):
        entry, consumed = self.root.locate(())
        self.assertIs(entry, self.root)
        self.assertEqual(consumed, 0)

    def testRouteLeavesArgumentsOut(self):
        self.assertEqual(self.root.route(("remote", "add", "origin", "url")), ("remote", "add"))
        self.assertEqual(self.root.route(("clone", "url")), ("clone",))
        self.assertEqual(self.root.route(("pull",)), ())


class TestShadowing(TestCase):
    """An otherwise() registered before siblings is reported, never refused."""

    def testWarnsWhenOtherwiseIsNotLast(self):
        def builder(ctx):
            ctx.otherwise().run(lambda: None)
            ctx.command("status").run(lambda: None)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            children = describe(builder).children

        self.assertEqual(len(children), 2)
        self.assertEqual(len(caught), 1)
        self.assertIs(caught[0].category, ShadowedCommandWarning)
        self.assertIn("'status'", str(caught[0].message))
        self.assertEqual(caught[0].message.options["code"], FaultCode.SHADOWED_COMMAND)

    def testSilentWhenOtherwiseIsLast(self):
        def builder(ctx):
            ctx.command("status").run(lambda: None)
            ctx.otherwise().run(lambda: None)

        with warnings.catch_warnings(record=True) as caught:
            warnings.simplefilter("always")
            describe(builder).children

        self.assertEqual(caught, [])

    def testShellSnapshotPrintsTheWarning(self):
        def builder(ctx):
            ctx.command("remote").sub_commands(remote)

        def remote(ctx):
            ctx.otherwise().run(lambda: None)
            ctx.command("add").run(lambda: None)

        console = Console(file=io.StringIO(), width=100)
        with patch.object(faults, "console", console):
            with warnings.catch_warnings(record=True) as caught:
                warnings.simplefilter("always")
                describe(builder, shell=True).children[0].children

        self.assertEqual(caught, [])
        self.assertIn("Shadowed Command", console.file.getvalue())

    def testSnapshotFlagsAreKeywordOnly(self):
        with self.assertRaises(TypeError):
            describe(lambda ctx: None, True)


if __name__ == "__main__":
    unittest.main()
