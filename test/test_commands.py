"""
Command tree behavioral tests (structure, resolution, flag merging, dispatch).

Scope
- Validate tree wiring: command paths, children, self-parenting guards.
- Validate the resolver: exact, prefix-greedy descent and residual arguments.
- Validate persistent flag merging: nearest ancestor wins, local wins, idempotence.
- Validate Commander.execute: help flag/command, parse faults, deprecation.

Conventions
- Test method names follow CamelCase per project convention.
- Tests use the public API (Command, Commander, command, find, invoke).
"""

from __future__ import annotations

import io
import unittest
from unittest import TestCase

from taipan import Command, Commander, command, find, invoke
from taipan.faults import (
    DeprecatedCommandWarning,
    EmptyTreeError,
    SelfParentingError,
    UnknownFlagError,
    UnknownSubcommandError,
)


class Recorder:
    """Run action remembering every (command, args) call."""

    def __init__(self):
        self.calls = []

    def __call__(self, command, args):
        self.calls.append((command, args))


def tree():
    """
    root (Commander, not runnable, persistent --debug/-d)
    ├── sub1 (runnable, local --long)
    │   └── sub1sub1 (runnable)
    └── sub2 (runnable)
    """
    recorder = Recorder()
    output = io.StringIO()
    root = Commander("root", short="root command", output=output)
    root.persistent_flags.boolean("debug", "d", usage="enable debug output")
    sub1 = Command("sub1", short="first subcommand", run=recorder)
    sub1.flags.boolean("long", usage="long listing")
    sub1sub1 = Command("sub1sub1", short="nested subcommand", run=recorder)
    sub2 = Command("sub2", short="second subcommand", run=recorder)
    sub1.add_command(sub1sub1)
    root.add_command(sub1, sub2)
    return root, sub1, sub1sub1, sub2, recorder, output


class TestCommandTree(TestCase):
    """Structural properties of the command tree."""

    def testCommandPathJoinsNamesFromRoot(self):
        root, sub1, sub1sub1, sub2, _, _ = tree()
        self.assertEqual(root.command_path, "root")
        self.assertEqual(sub1sub1.command_path, "root sub1 sub1sub1")
        self.assertEqual(sub2.command_path, "root sub2")

    def testChildrenContainAddedCommandOnce(self):
        root = Command("root")
        child = Command("child")
        root.add_command(child)
        self.assertEqual([c for c in root.children if c is child], [child])
        self.assertIs(child.parent, root)
        self.assertTrue(root.has_children)
        self.assertTrue(child.has_parent)

    def testChildrenKeepInsertionOrder(self):
        root = Command("root")
        names = ["zeta", "alpha", "mid"]
        root.add_command(*(Command(name) for name in names))
        self.assertEqual([child.name for child in root.children], names)

    def testNameIsFirstWordOfUse(self):
        self.assertEqual(Command("serve [flags] <dir>").name, "serve")
        self.assertEqual(Command("serve [flags]", name="run").name, "run")

    def testUseOrNameRequired(self):
        with self.assertRaises(ValueError):
            Command()
        with self.assertRaises(TypeError):
            Command(42)

    def testUseLineIncludesParentPath(self):
        root, _, sub1sub1, _, _, _ = tree()
        leaf = Command("leaf <file>")
        sub1sub1.add_command(leaf)
        self.assertEqual(leaf.use_line, "root sub1 sub1sub1 leaf <file>")
        self.assertEqual(root.use_line, "root")

    def testSelfParentingRaises(self):
        node = Command("node")
        with self.assertRaises(SelfParentingError):
            node.add_command(node)

    def testAncestorBelowDescendantRaises(self):
        root, sub1, sub1sub1, _, _, _ = tree()
        with self.assertRaises(SelfParentingError):
            sub1sub1.add_command(root)

    def testSecondParentRaises(self):
        root, sub1, _, sub2, _, _ = tree()
        with self.assertRaises(SelfParentingError):
            sub2.add_command(sub1)
        # SelfParentingError is a plain ValueError, never a reported fault
        self.assertTrue(issubclass(SelfParentingError, ValueError))

    def testCommanderPropagatesToSubtree(self):
        root, sub1, sub1sub1, sub2, _, _ = tree()
        for node in (root, sub1, sub1sub1, sub2):
            self.assertIs(node.commander, root)

        late = Command("late")
        late.add_command(grandchild := Command("grandchild"))
        sub2.add_command(late)
        self.assertIs(grandchild.commander, root)

    def testResetCommandsDetachesChildren(self):
        root, sub1, _, sub2, _, _ = tree()
        root.reset_commands()
        self.assertEqual(root.children, [])
        self.assertIsNone(sub1.parent)
        self.assertFalse(sub2.has_parent)

    def testCommandDecoratorAttachesChild(self):
        root = Commander("root")

        @root.command("serve [flags]", short="start the server")
        def serve(command, args):
            pass

        self.assertIsInstance(serve, Command)
        self.assertEqual(serve.name, "serve")
        self.assertEqual(serve.short, "start the server")
        self.assertIs(serve.parent, root)
        self.assertTrue(serve.runnable)

    def testBareCommandDecoratorUsesDocstring(self):
        @command
        def deploy(command, args):
            """
            Deploy the application.

            Pushes the current build to every configured target.
            """

        self.assertEqual(deploy.name, "deploy")
        self.assertEqual(deploy.short, "Deploy the application.")
        self.assertIn("configured target", deploy.long)
        self.assertIsNone(deploy.parent)

    def testReprUsesTypename(self):
        self.assertTrue(repr(Command("serve")).startswith("command(name='serve'"))
        self.assertTrue(repr(Commander("app")).startswith("commander(name='app'"))


class TestResolver(TestCase):
    """find(command, args)."""

    def testEmptyTreeRaises(self):
        with self.assertRaises(EmptyTreeError):
            find(None, ["anything"])

    def testDescendsOnExactNames(self):
        root, sub1, sub1sub1, _, _, _ = tree()
        self.assertEqual(find(root, ["sub1", "sub1sub1", "x"]), (sub1sub1, ["x"]))
        self.assertEqual(find(root, ["sub1", "--long", "--debug"]), (sub1, ["--long", "--debug"]))

    def testSingleTokenDoesNotDescend(self):
        root, sub1, _, _, _, _ = tree()
        # a lone token is never consumed as a subcommand name
        self.assertEqual(find(root, ["sub1"]), (None, None))
        self.assertEqual(find(sub1, ["sub1sub1"]), (sub1, ["sub1sub1"]))

    def testNoAbbreviation(self):
        root, _, _, _, _, _ = tree()
        self.assertEqual(find(root, ["sub", "x"]), (None, None))

    def testFirstMatchingSiblingWins(self):
        root = Command("root")
        first = Command("dup", run=lambda command, args: None)
        second = Command("dup", run=lambda command, args: None)
        root.add_command(first, second)
        self.assertIs(find(root, ["dup", "x"])[0], first)

    def testResolutionIsDeterministic(self):
        root, _, _, _, _, _ = tree()
        args = ["sub1", "sub1sub1", "--debug", "file"]
        self.assertEqual(find(root, args), find(root, args))
        self.assertEqual(args, ["sub1", "sub1sub1", "--debug", "file"])

    def testRunnableRootWithNoArguments(self):
        root = Command("root", run=lambda command, args: None)
        self.assertEqual(root.find([]), (root, []))


class TestFlagMerging(TestCase):
    """merge_persistent_flags and the inherited/non-inherited views."""

    def testNearestAncestorWins(self):
        root, sub1, sub1sub1, _, _, _ = tree()
        nearer = sub1.persistent_flags.boolean("debug", usage="sub1 debug")
        sub1sub1.merge_persistent_flags()
        self.assertIs(sub1sub1.flags.lookup("debug"), nearer)

    def testLocalFlagShadowsInherited(self):
        root, sub1, _, _, _, _ = tree()
        local = sub1.flags.string("debug", usage="local debug")
        sub1.merge_persistent_flags()
        self.assertIs(sub1.flags.lookup("debug"), local)
        self.assertIsNone(sub1.inherited_flags().lookup("debug"))

    def testMergeIsIdempotent(self):
        root, sub1, sub1sub1, _, _, _ = tree()
        sub1sub1.merge_persistent_flags()
        first = list(sub1sub1.flags)
        sub1sub1.merge_persistent_flags()
        second = list(sub1sub1.flags)
        self.assertEqual(len(first), len(second))
        for a, b in zip(first, second):
            self.assertIs(a, b)

    def testMergedFlagSharesStorage(self):
        root, sub1, _, _, _, _ = tree()
        sub1.parse_flags(["--debug"])
        self.assertTrue(root.persistent_flags.lookup("debug").value)

    def testShorthandCollisionIsIgnored(self):
        root, sub1, _, _, _, _ = tree()
        local = sub1.flags.boolean("dry-run", "d")
        sub1.merge_persistent_flags()
        self.assertIs(sub1.flags.shorthand_lookup("d"), local)
        self.assertIsNotNone(sub1.flags.lookup("debug"))

    def testInheritedAndNonInheritedViews(self):
        root, sub1, _, _, _, _ = tree()
        sub1.persistent_flags.string("format", usage="output format")
        sub1.merge_persistent_flags()
        self.assertEqual([flag.name for flag in sub1.non_inherited_flags()], ["format", "long"])
        self.assertEqual([flag.name for flag in sub1.inherited_flags()], ["debug"])
        self.assertEqual([flag.name for flag in root.non_inherited_flags()], ["debug"])

    def testFlagLookupClimbsPersistentFlags(self):
        root, sub1, sub1sub1, _, _, _ = tree()
        self.assertIs(sub1sub1.flag("debug"), root.persistent_flags.lookup("debug"))
        self.assertIsNone(sub1sub1.flag("long"))


class TestExecute(TestCase):
    """Commander.execute and invoke."""

    def testRunsTargetWithMergedFlags(self):
        root, sub1, _, _, recorder, _ = tree()
        root.execute(["sub1", "--long", "--debug"])
        self.assertEqual(recorder.calls, [(sub1, [])])
        self.assertTrue(sub1.flags.lookup("long").value)
        self.assertTrue(sub1.flags.lookup("debug").value)

    def testPositionalArgumentsReachRun(self):
        root, _, sub1sub1, _, recorder, _ = tree()
        root.execute(["sub1", "sub1sub1", "a", "-d", "b"])
        self.assertEqual(recorder.calls, [(sub1sub1, ["a", "b"])])

    def testUnknownSubcommandNamesInput(self):
        root, _, _, _, recorder, _ = tree()
        with self.assertRaises(UnknownSubcommandError) as context:
            root.execute(["bogus"])
        self.assertIn("bogus", str(context.exception))
        self.assertEqual(recorder.calls, [])

    def testUnknownSubcommandSuggestsSibling(self):
        root, _, _, _, _, _ = tree()
        with self.assertRaises(UnknownSubcommandError) as context:
            root.execute(["sub3"])
        self.assertIn("did you mean", context.exception.hint)

    def testMissingSubcommand(self):
        root, _, _, _, _, _ = tree()
        with self.assertRaises(UnknownSubcommandError) as context:
            root.execute([])
        self.assertIn("missing subcommand", str(context.exception))

    def testRunnableRootWithEmptyArguments(self):
        recorder = Recorder()
        root = Commander("root", run=recorder, output=io.StringIO())
        root.set_args(["ignored"])
        root.execute([])
        self.assertEqual(recorder.calls, [(root, [])])

    def testSetArgsUsedWhenNoneGiven(self):
        root, sub1, _, _, recorder, _ = tree()
        root.set_args(["sub1", "--long", "file"])
        root.execute()
        self.assertEqual(recorder.calls, [(sub1, ["file"])])

    def testParseErrorPrintsUsageAndRaises(self):
        root, sub1, _, _, recorder, output = tree()
        with self.assertRaises(UnknownFlagError) as context:
            root.execute(["sub1", "--nope"])
        self.assertIs(context.exception.tool, sub1)
        self.assertIn("Usage:", output.getvalue())
        self.assertIn("root sub1", output.getvalue())
        self.assertEqual(recorder.calls, [])

    def testHelpFlagPrintsHelpInsteadOfRunning(self):
        root, sub1, _, _, recorder, output = tree()
        root.execute(["sub1", "--help"])
        self.assertEqual(recorder.calls, [])
        self.assertTrue(output.getvalue().startswith("first subcommand\n\n"))
        self.assertIn("help for sub1", output.getvalue())

    def testHelpFlagDoesNotCarryOverToNextRun(self):
        root, sub1, _, _, recorder, _ = tree()
        root.execute(["sub1", "--help"])
        root.execute(["sub1", "x"])
        self.assertEqual(recorder.calls, [(sub1, ["x"])])
        self.assertFalse(sub1.flags.lookup("help").value)

    def testHiddenPersistentFlagStillParses(self):
        root, sub1, _, _, recorder, _ = tree()
        root.persistent_flags.boolean("secret", usage="internal switch")
        root.persistent_flags.mark_hidden("secret")
        root.execute(["sub1", "--secret", "x"])
        self.assertEqual(recorder.calls, [(sub1, ["x"])])
        self.assertTrue(root.persistent_flags.lookup("secret").value)
        self.assertNotIn("secret", sub1.inherited_flags().flag_usages())

    def testUnknownSubcommandMatchingChildPointsToHelp(self):
        root, _, _, _, _, _ = tree()
        with self.assertRaises(UnknownSubcommandError) as context:
            root.execute(["sub1"])
        self.assertNotIn("did you mean", context.exception.hint)
        self.assertIn("root help sub1", context.exception.hint)

    def testHelpShorthandYieldsToExistingFlag(self):
        root, sub1, _, _, recorder, _ = tree()
        sub1.flags.boolean("human", "h")
        root.execute(["sub1", "-h", "x"])
        self.assertEqual(recorder.calls, [(sub1, ["x"])])
        self.assertIsNone(sub1.flags.lookup("help").shorthand)

    def testHelpCommandIsAddedLast(self):
        root, _, _, _, _, _ = tree()
        root.execute(["sub2", "x"])
        self.assertEqual([child.name for child in root.children], ["sub1", "sub2", "help"])
        self.assertIs(root.help_command, root.children[-1])
        root.execute(["sub2", "y"])
        self.assertEqual(len(root.children), 3)

    def testHelpCommandPrintsTopic(self):
        root, _, _, _, recorder, output = tree()
        root.execute(["help", "sub1"])
        self.assertEqual(recorder.calls, [])
        self.assertIn("first subcommand", output.getvalue())
        self.assertIn("Usage:", output.getvalue())

    def testHelpCommandUnknownTopic(self):
        root, _, _, _, _, _ = tree()
        with self.assertRaises(UnknownSubcommandError):
            root.execute(["help", "nothing"])

    def testDeprecatedCommandWarns(self):
        root, _, _, _, recorder, _ = tree()
        old = Command("old", run=recorder, deprecated="use sub2 instead")
        root.add_command(old)
        with self.assertWarns(DeprecatedCommandWarning):
            root.execute(["old", "x"])
        self.assertEqual(recorder.calls, [(old, ["x"])])

    def testInvokeExitsOnFault(self):
        root, _, _, _, _, output = tree()
        with self.assertRaises(SystemExit) as context:
            invoke(root, "bogus arguments")
        self.assertEqual(context.exception.code, 1)
        self.assertIn("bogus", output.getvalue())

    def testInvokeSplitsShellString(self):
        root, sub1, _, _, recorder, _ = tree()
        invoke(root, "sub1 --long 'two words'")
        self.assertEqual(recorder.calls, [(sub1, ["two words"])])

    def testInvokeRejectsNonCommander(self):
        with self.assertRaises(TypeError):
            invoke(Command("plain"), [])


class TestOutput(TestCase):
    """print helpers and debug_flags."""

    def testPrintGoesToCommanderOutput(self):
        root, sub1, _, _, _, output = tree()
        sub1.print("a", "b")
        sub1.println("c", "d")
        sub1.printf("%s=%d\n", "n", 3)
        self.assertEqual(output.getvalue(), "abc d\nn=3\n")

    def testOutputKeepsBracketsLiteral(self):
        root, _, _, _, _, output = tree()
        root.println("[bold]literal[/bold]")
        self.assertEqual(output.getvalue(), "[bold]literal[/bold]\n")

    def testOutputKeepsTabs(self):
        root, _, _, _, _, output = tree()
        root.println("a\tb")
        root.printf("%s\t%s\n", "c", "d")
        self.assertEqual(output.getvalue(), "a\tb\nc\td\n")

    def testDebugFlagsMarkers(self):
        root, sub1, _, _, _, output = tree()
        root.debug_flags()
        text = output.getvalue()
        self.assertTrue(text.startswith("DebugFlags called on root\n"))
        self.assertIn("--debug [false]  False  [P]", text)
        self.assertIn("--long [false]  False  [L]", text)


if __name__ == "__main__":
    unittest.main()
