"""
Faults and drivers behavioral tests (enrichment, rendering, shell mode).

Scope
- Validate that parse() enriches faults with scope, suggestions and a hint.
- Validate rendering of faults (echoed input, carets, usage of the scope).
- Validate shell mode (print and exit) and soft mode (print and return).
- Validate the fault helpers: FaultCode, __replace__, trigger, getdoc, args.

Conventions
- Test method names follow CamelCase per project convention.
- Consoles are patched to in-memory files; output is compared as plain text.
"""
import io
import sys
import unittest
from unittest import TestCase
from unittest.mock import patch

from rich.console import Console

from conso import parse, args, either
from conso import faults
from conso.faults import (
    CommandException,
    NoMatchError,
    UnknownSubcommandError,
    ArgumentConstraintError,
    TrailingTokensError,
    MalformedInputError,
    CommandWarning,
    FaultCode,
    trigger,
    getdoc,
)


def calculator(calls):
    def math(ctx):
        ctx.command("add").arg(int).arg(int).run(lambda a, b: calls.append(a + b))
        ctx.command("subtract").arg(int).arg(int).run(lambda a, b: calls.append(a - b))

    def builder(ctx):
        ctx.command("multiply") \
            .description("Multiply two small numbers") \
            .constrained_arg(range(0, 100)) \
            .constrained_arg(range(0, 100)) \
            .run(lambda a, b: calls.append(a * b))
        ctx.command("math").description("Integer arithmetic").sub_commands(math)
        ctx.command(either("q", "quit")).run(lambda: calls.append("quit"))

    return builder


class TestEnrichment(TestCase):
    """parse() attaches scope, suggestions and hints before raising."""

    def setUp(self):
        self.calls = []
        self.builder = calculator(self.calls)

    def testRunsLikeExecute(self):
        parse("multiply 6 7", self.builder)
        parse(["math", "add", "1", "2"], self.builder)
        self.assertEqual(self.calls, [42, 3])

    def testSuggestionsFromRootScope(self):
        with self.assertRaises(NoMatchError) as context:
            parse("mutliply 6 7", self.builder)
        fault = context.exception
        self.assertIsNone(fault.scope.constraint)
        self.assertEqual(fault.suggestions[0], "multiply")
        self.assertIn("did you mean 'multiply'?", fault.options["hint"])
        self.assertIn("'help'", fault.options["hint"])

    def testSuggestionsFromNestedScope(self):
        with self.assertRaises(UnknownSubcommandError) as context:
            parse("math ad 1 2", self.builder)
        fault = context.exception
        self.assertEqual(fault.scope.constraint.usage(), "math")
        self.assertEqual(fault.suggestions, ("add",))
        self.assertIn("'help math'", fault.options["hint"])

    def testArgumentFaultPointsAtCommandHelp(self):
        with self.assertRaises(ArgumentConstraintError) as context:
            parse("multiply 6 700", self.builder)
        fault = context.exception
        self.assertEqual(fault.suggestions, ())
        self.assertEqual(fault.options["expected"], "<number 0..100>")
        self.assertIn("'help multiply'", fault.options["hint"])

    def testTrailingTokensHint(self):
        with self.assertRaises(TrailingTokensError) as context:
            parse("quit now", self.builder)
        self.assertEqual(context.exception.options["leftover"], ("now",))
        self.assertIn("remove the extra input", context.exception.options["hint"])

    def testHintWithoutHelp(self):
        with self.assertRaises(NoMatchError) as context:
            parse("mutliply 6 7", self.builder, help=False)
        self.assertEqual(context.exception.options["hint"], "did you mean 'multiply'?")

    def testNoHandlerRunsOnFailure(self):
        for prompt in ("mutliply 6 7", "multiply 6 700", "quit now", "math"):
            with self.subTest(prompt=prompt):
                with self.assertRaises(CommandException):
                    parse(prompt, self.builder)
        self.assertEqual(self.calls, [])

    def testMalformedInput(self):
        with self.assertRaises(MalformedInputError) as context:
            parse('multiply "6 7', self.builder)
        self.assertEqual(context.exception.code, FaultCode.MALFORMED_INPUT)

    def testUnknownHelpTopic(self):
        with self.assertRaises(NoMatchError) as context:
            parse("help mth", self.builder)
        fault = context.exception
        self.assertEqual(fault.index, 1)
        self.assertEqual(fault.suggestions, ("math",))
        self.assertIn("unknown help topic 'mth' at second position", str(fault))

    def testHelpIsAnOrdinaryWordWhenDisabled(self):
        with self.assertRaises(NoMatchError):
            parse("help", self.builder, help=False)


class TestRendering(TestCase):
    """Faults render position-first diagnostics through rich."""

    def setUp(self):
        self.console = Console(file=io.StringIO(), width=120)
        patcher = patch.object(faults, "console", self.console)
        patcher.start()
        self.addCleanup(patcher.stop)
        self.calls = []
        self.builder = calculator(self.calls)

    @property
    def rendered(self):
        return self.console.file.getvalue()

    def testSoftShellPrintsAndReturns(self):
        parse("mutliply 6 7", self.builder, shell=True, soft=True)
        lines = self.rendered.splitlines()
        self.assertIn("11101", lines[0])
        self.assertIn("Unknown Command", lines[0])
        self.assertEqual(lines[1], "mutliply 6 7")
        self.assertEqual(lines[2], "^^^^^^^^ unknown command 'mutliply' at first position")
        self.assertIn("did you mean 'multiply'?", self.rendered)
        self.assertIn("usage:", self.rendered)
        self.assertIn("multiply <number 0..100> <number 0..100>", self.rendered)

    def testCaretsUnderFailingArgument(self):
        parse("multiply 6 700", self.builder, shell=True, soft=True)
        lines = self.rendered.splitlines()
        self.assertTrue(lines[2].startswith("           ^^^ invalid argument '700'"))

    def testCaretPastTheEnd(self):
        parse("math", self.builder, shell=True, soft=True)
        lines = self.rendered.splitlines()
        self.assertTrue(lines[2].startswith("     ^ missing subcommand at second position"))
        self.assertIn("add <integer> <integer>", self.rendered)

    def testShellExits(self):
        with self.assertRaises(SystemExit) as context:
            parse("divide", self.builder, shell=True)
        self.assertEqual(context.exception.code, 1)
        self.assertIn("unknown command 'divide'", self.rendered)

    def testFancyPanel(self):
        parse("divide", self.builder, shell=True, soft=True, fancy=True)
        self.assertIn("╭", self.rendered)
        self.assertIn("unknown command 'divide'", self.rendered)

    def testWarningPrintsInShellMode(self):
        trigger(CommandWarning("careful", title="notice", hint="look around"), shell=True)
        self.assertIn("careful", self.rendered)
        self.assertIn("look around", self.rendered)

    def testArgsReadsProcessArguments(self):
        with patch.object(sys, "argv", ["calc", "multiply", "3", "4"]):
            args(self.builder)
        self.assertEqual(self.calls, [12])

    def testArgsExitsOnFault(self):
        with patch.object(sys, "argv", ["calc", "multiply", "3"]):
            with self.assertRaises(SystemExit):
                args(self.builder)
        self.assertIn("missing argument at third position", self.rendered)

    def testArgsKeepsProcessArgumentsVerbatim(self):
        seen = []

        def builder(ctx):
            ctx.command("say").arg(str).run(seen.append)

        with patch.object(sys, "argv", ["prog", "say", ""]):
            args(builder, shell=False)
        with patch.object(sys, "argv", ["prog", "say", "  two  spaces  "]):
            args(builder, shell=False)
        self.assertEqual(seen, ["", "  two  spaces  "])


class TestFaultHelpers(TestCase):
    """FaultCode, __replace__, trigger and getdoc."""

    def testNormalizeDefaultsToValue(self):
        self.assertEqual(FaultCode.NO_MATCH.normalize(), "11101")

    def testReplaceKeepsTypeAndMergesOptions(self):
        fault = ArgumentConstraintError("bad", tokens=("a", "b"), index=1)
        replaced = fault.__replace__(hint="fix it")
        self.assertIsInstance(replaced, ArgumentConstraintError)
        self.assertEqual(replaced.options["hint"], "fix it")
        self.assertEqual(replaced.remaining, ("b",))
        self.assertNotIn("hint", fault.options)

    def testOptionsAreReadOnly(self):
        fault = NoMatchError("nothing")
        with self.assertRaises(TypeError):
            fault.options["code"] = 1

    def testTriggerRaisesOutsideShell(self):
        with self.assertRaises(NoMatchError):
            trigger(NoMatchError("nothing"))

    def testTriggerWarnsOutsideShell(self):
        with self.assertWarns(CommandWarning):
            trigger(CommandWarning("careful"))

    def testTriggerRejectsOtherObjects(self):
        with self.assertRaises(TypeError):
            trigger(ValueError("plain"))

    def testGetdocWithoutHostDocs(self):
        self.assertIsNone(getdoc(FaultCode.NO_MATCH))
        with self.assertRaises(TypeError):
            getdoc(11101)

    def testMessageMustBeString(self):
        with self.assertRaises(TypeError):
            NoMatchError(42)


if __name__ == "__main__":
    unittest.main()
