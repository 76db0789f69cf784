"""
Taipan command layer: build command trees, resolve arguments, run actions.

What this module provides
- Command: one node of the command tree with identity (use/short/long/example),
  local flags, persistent (inheritable) flags, ordered children, a non-owning
  parent reference and an optional run action.
- Commander: the top-level controller. It is the root Command of its tree and
  owns the output stream, the usage/help renderers and execute().
- find(command, args): the resolver.
- command(...): create a Command from a function, or a decorator that does it.
- invoke(commander, prompt): process-boundary runner that renders faults.

Core ideas
- Resolution is exact and prefix-greedy: a child is entered only when its name
  equals the next token and at least one more token follows it.
- Persistent flags are merged into the target's local flag set right before
  parsing; the nearest ancestor wins and local flags always win.
- The tree is built first and only read while dispatching.

Quick start
    from taipan import Commander, invoke

    app = Commander("app", short="example application")
    app.persistent_flags.boolean("debug", "d", usage="enable debug output")

    @app.command("serve [flags]", short="start the server")
    def serve(command, args):
        port = command.flags.lookup("port").value
        debug = command.flag("debug").value
        print(port, debug, args)

    serve.flags.integer("port", "p", 8080, "port to listen on")

    if __name__ == "__main__":
        invoke(app)
"""
import difflib
import inspect
import logging
import os.path
import shlex
import sys
from collections.abc import Iterable

from rich.console import Console

from .faults import *
from .flags import Flag, FlagSet
from .rendering import render_help, render_usage
from .utils import *

logger = logging.getLogger(__name__)

_console = Console(stderr=True)


def _sanitized(cls, name, object):
    """
    Validate a scalar string field: str or Unset, anything else is a TypeError.
    """
    if object is not Unset and not isinstance(object, str):
        raise TypeError(f"{cls.__typename__} {name!r} must be a string")
    return coalesce(object, "")


def _adopt(command, commander):
    """
    Assign the tree owner to a whole subtree (iterative, depth-first).
    """
    pending = [command]
    while pending:
        node = pending.pop()
        node._commander = commander
        pending.extend(node._children)


def find(command, args, /):
    """
    Find the target command for args, starting at command.

    Returns
    - (target, residual) when a runnable command was found; residual holds
      every token that was not consumed as a subcommand name.
    - (None, None) when no runnable command matched.

    Raises
    - EmptyTreeError when command is None.

    Rules
    - A child is entered only when more than one token remains and its name
      equals the first token exactly; siblings are scanned in insertion order
      and the first match wins.
    - Otherwise the current command is the target if it is runnable.
    """
    if command is None:
        trigger(EmptyTreeError(
            "cannot resolve arguments on an empty command tree",
            title="empty tree",
            code=FaultCode.EMPTY_TREE,
            hint="build the command tree before calling execute",
        ))

    args = list(args)
    while len(args) > 1 and command.has_children:
        for child in command._children:
            if child.name == args[0]:
                logger.debug("descending from %r into %r", command.name, child.name)
                command, args = child, args[1:]
                break
        else:
            break

    if command.runnable:
        logger.debug("resolved %r with residual arguments %r", command.command_path, args)
        return command, args
    return None, None


class Command(metaclass=IntrospectiveType):
    """
    A node of the command tree.

    Identity
    - use: one-line usage message; its first word is the command name.
    - name: explicit name (overrides the first word of use).
    - short: description shown in listings; long: description shown in help.
    - example: free-form example text for help and man pages.

    Behavior
    - run: callable (command, args) -> None; commands without one are
      containers / help topics and are never dispatched to.
    - deprecated: message; deprecated commands warn when run and are skipped
      by man page and completion generation.
    - hidden: left out of usage listings and completion.

    Structure
    - parent: set once by add_command(); never used for ownership.
    - children: ordered; insertion order drives usage listings.
    - commander: the Commander owning the tree, propagated on attach.
    - flags / persistent_flags: created on first access.
    """

    __introspectable__ = (
        "use",
        "short",
        "long",
        "example",
        "run",
        "deprecated",
        "hidden",
        "parent",
        "children",
        "commander",
    )

    __displayable__ = (
        "name",
        "use",
        "short",
        "runnable",
        "hidden",
        "deprecated",
    )

    def __init__(
            self,
            use=Unset,
            /,
            short=Unset,
            long=Unset,
            example=Unset,
            run=Unset,
            *,
            name=Unset,
            deprecated=Unset,
            hidden=False
    ):
        cls = type(self)
        self._use = _sanitized(cls, "use", use)
        self._name = _sanitized(cls, "name", name).strip()
        if not self._use.strip() and not self._name:
            raise ValueError(f"{cls.__typename__} 'use' or 'name' must be set")
        self._short = _sanitized(cls, "short", short)
        self._long = _sanitized(cls, "long", long)
        self._example = _sanitized(cls, "example", example)
        self._deprecated = _sanitized(cls, "deprecated", deprecated).strip() or None

        if run is not Unset and not callable(run):
            raise TypeError(f"{cls.__typename__} 'run' must be callable")
        self._run = coalesce(run)
        self._hidden = bool(hidden)

        self._parent = None
        self._children = []
        self._commander = None
        self._flags = None
        self._persistent_flags = None

    @property
    def name(self):
        """
        Explicit name if set, otherwise the first word of the use line.
        """
        if self._name:
            return self._name
        return self._use.strip().split(" ", 1)[0]

    @property
    def runnable(self):
        return self._run is not None

    @property
    def has_children(self):
        return len(self._children) > 0

    @property
    def has_parent(self):
        return self._parent is not None

    @property
    def root(self):
        """
        Return the topmost command of the hierarchy this command belongs to.
        """
        command = self
        while command._parent is not None:
            command = command._parent
        return command

    @property
    def path(self):
        """
        Return the ancestry from root to this command as a tuple.
        """
        path = [command := self]
        while command._parent is not None:
            path.append(command := command._parent)
        return tuple(reversed(path))

    @property
    def command_path(self):
        return " ".join(command.name for command in self.path)

    @property
    def use_line(self):
        """
        The parent's command path followed by this command's use line.
        """
        if self._parent is None:
            return self._use or self.name
        return "%s %s" % (self._parent.command_path, self._use or self.name)

    @property
    def flags(self):
        if self._flags is None:
            self._flags = FlagSet(self.name)
        return self._flags

    @property
    def persistent_flags(self):
        if self._persistent_flags is None:
            self._persistent_flags = FlagSet(self.name)
        return self._persistent_flags

    @property
    def has_flags(self):
        return self._flags is not None and self._flags.has_flags()

    @property
    def has_persistent_flags(self):
        return self._persistent_flags is not None and self._persistent_flags.has_flags()

    @property
    def out(self):
        """
        Console every print of this command goes to (the commander's, or stderr).
        """
        if self._commander is not None:
            return self._commander.console
        return _console

    def add_command(self, *commands):
        """
        Attach one or many commands as children of this command.

        Each command gets this command as parent and inherits its commander
        (the whole attached subtree does). Attaching a command to itself, or to
        one of its own descendants, or attaching a command that already has a
        parent raises SelfParentingError.
        """
        for command in commands:
            if not isinstance(command, Command):
                raise TypeError(f"{type(self).__typename__} children must be commands")
            if command is self:
                raise SelfParentingError("command can't be a child of itself")
            if command in self.path:
                raise SelfParentingError(f"command {command.name!r} can't be a child of its own descendant")
            if command._parent is not None:
                raise SelfParentingError(f"command {command.name!r} is already a child of {command._parent.name!r}")

            command._parent = self
            _adopt(command, self._commander)
            self._children.append(command)

    def command(self, source=Unset, /, **kwargs):
        """
        Create a child command from a function, or return a decorator doing so.

        Forms
        - self.command(callback, short=...) -> Command
        - @self.command("serve [flags]", short=...) -> decorator
        - @self.command -> Command named after the function
        """
        return command(source, parent=self, **kwargs)

    def reset_commands(self):
        for child in self._children:
            child._parent = None
        self._children = []

    def reset_flags(self):
        self._flags = FlagSet(self.name)
        self._persistent_flags = FlagSet(self.name)

    def find(self, args, /):
        return find(self, args)

    def _persistent_flag(self, name):
        command = self
        while command is not None:
            if command.has_persistent_flags and (flag := command._persistent_flags.lookup(name)) is not None:
                return flag
            command = command._parent
        return None

    def flag(self, name, /):
        """
        Look a flag up by name: local flags first, then the nearest persistent one.
        """
        if (flag := self.flags.lookup(name)) is not None:
            return flag
        return self._persistent_flag(name)

    def merge_persistent_flags(self):
        """
        Copy every ancestor's persistent flags into the local flag set.

        Climbs from this command to the root; a name already present is never
        replaced, so local flags and nearer ancestors win. Safe to call again.
        """
        flags = self.flags
        command = self
        while command is not None:
            if command.has_persistent_flags:
                for flag in command._persistent_flags:
                    if flags.lookup(flag.name) is None:
                        flags.add_flag(flag, strict=False)
                    else:
                        logger.debug("flag %r of %r shadowed on %r", flag.name, command.name, self.name)
            command = command._parent

    def parse_flags(self, args, /):
        self.merge_persistent_flags()
        return self.flags.parse(args)

    def _inherited(self, flag):
        """
        True when flag is an ancestor's persistent flag object (merged in).
        """
        command = self._parent
        while command is not None:
            if command.has_persistent_flags and command._persistent_flags.lookup(flag.name) is flag:
                return True
            command = command._parent
        return False

    def non_inherited_flags(self):
        """
        Flags defined on this command: its local flags and its own persistent flags.
        """
        flags = FlagSet(self.name)
        for source in (self._flags, self._persistent_flags):
            for flag in source or ():
                if flags.lookup(flag.name) is None and not self._inherited(flag):
                    flags.add_flag(flag, strict=False)
        return flags

    def inherited_flags(self):
        """
        Persistent flags coming from ancestors (nearest wins), minus shadowed names.
        """
        local = self.non_inherited_flags()
        flags = FlagSet(self.name)
        command = self._parent
        while command is not None:
            for flag in command._persistent_flags or ():
                if local.lookup(flag.name) is None and flags.lookup(flag.name) is None:
                    flags.add_flag(flag, strict=False)
            command = command._parent
        return flags

    def _write(self, text):
        # verbatim, bypassing rich markup and tab expansion
        file = self.out.file
        file.write(text)
        file.flush()

    def print(self, *objects):
        self._write("".join(map(str, objects)))

    def println(self, *objects):
        self._write(" ".join(map(str, objects)) + "\n")

    def printf(self, format, /, *args):
        self.print(format % args)

    def usage(self):
        """
        Write this command's usage text to the output.
        """
        renderer = self._commander.usage_func if self._commander is not None else render_usage
        self.print(renderer(self))

    def help(self):
        """
        Write this command's help text to the output.
        """
        renderer = self._commander.help_func if self._commander is not None else render_help
        self.print(renderer(self))

    def debug_flags(self):
        """
        Print every command of the subtree with its flags.

        Markers: [L] local, [LP] local and persistent on the same command,
        [P] persistent.
        """
        self.println("DebugFlags called on", self.name)

        def line(flag, marker):
            return "  -%s, --%s [%s]  %s  %s" % (
                flag.shorthand or "", flag.name, flag.default_text, flag.value, marker
            )

        pending = [self]
        while pending:
            command = pending.pop(0)
            if command.has_flags or command.has_persistent_flags:
                self.println(command.name)
            if command.has_flags:
                for flag in command._flags:
                    if command.has_persistent_flags and command._persistent_flags.lookup(flag.name) is flag:
                        self.println(line(flag, "[LP]"))
                    else:
                        self.println(line(flag, "[L]"))
            if command.has_persistent_flags:
                for flag in command._persistent_flags:
                    if not command.has_flags or command._flags.lookup(flag.name) is None:
                        self.println(line(flag, "[P]"))
            pending[:0] = command._children


class Commander(Command):
    """
    Top-level controller: the root of a command tree and its dispatcher.

    Configuration
    - name: program name (defaults to the executable's basename).
    - colorful / fancy: presentation switches for rendered faults.
    - usage_func / help_func: pure renderers (command) -> str; replace them to
      customize usage and help text.
    - set_args(args): arguments used by execute() when called without any.
    - set_output(file): destination of usage/help/errors (None means stderr).

    Execution
    - execute(args) resolves, merges, parses and runs; faults are raised, the
      process is never terminated here.
    """

    __displayable__ = (
        "name",
        "use",
        "short",
        "runnable",
        "colorful",
        "fancy",
    )

    def __init__(
            self,
            use=Unset,
            /,
            short=Unset,
            long=Unset,
            example=Unset,
            run=Unset,
            *,
            name=Unset,
            colorful=True,
            fancy=False,
            output=None
    ):
        if use is Unset and name is Unset:
            name = os.path.basename(sys.argv[0]) or "app"
        super().__init__(use, short, long, example, run, name=name)
        self._commander = self
        self._args = Unset
        self.colorful = bool(colorful)
        self.fancy = bool(fancy)
        self.usage_func = render_usage
        self.help_func = render_help
        self.help_command = None
        self.set_output(output)

    @property
    def console(self):
        return self._console

    def set_name(self, name, /):
        self._name = _sanitized(type(self), "name", name).strip()

    def set_args(self, args, /):
        """
        Arguments to use instead of sys.argv[1:] (mostly useful in tests).
        """
        self._args = list(args)

    def set_output(self, output, /):
        """
        Destination for usage, help and error output; None means stderr.
        """
        self._output = output
        if output is None:
            self._console = Console(stderr=True)
        else:
            self._console = Console(file=output, no_color=not self.colorful)

    def _help_run(self, command, args):
        target = self
        for name in args:
            for child in target._children:
                if child.name == name:
                    target = child
                    break
            else:
                trigger(UnknownSubcommandError(
                    "unknown help topic %r" % name,
                    title="unknown help topic",
                    code=FaultCode.UNKNOWN_SUBCOMMAND,
                    input=name,
                    hint="run '%s help' to see available commands" % self.name,
                    tool=command,
                    colorful=self.colorful,
                    fancy=self.fancy,
                ))
        target.help()

    def _init_help_command(self):
        if self.help_command is not None or not self.has_children:
            return
        if any(child.name == "help" for child in self._children):
            return
        self.help_command = Command(
            "help [command]",
            short="Help about any command",
            long="Help provides help for any command in the application.\n"
                 "Simply type %s help [path to command] for full details." % self.name,
            run=self._help_run,
        )
        self.add_command(self.help_command)

    @staticmethod
    def _init_help_flag(command):
        if command.flag("help") is not None:
            return
        taken = any(
            source is not None and source.shorthand_lookup("h") is not None
            for step in command.path
            for source in (step._persistent_flags, step._flags if step is command else None)
        )
        shorthand = None if taken else "h"
        command.flags.add_flag(Flag("help", shorthand, False, bool, "help for %s" % command.name), strict=False)

    def execute(self, args=Unset, /):
        """
        Resolve args against the tree and run the target command.

        Steps
        - args Unset: use set_args() arguments, else sys.argv[1:].
        - resolve with find(); EmptyTreeError propagates.
        - no target: UnknownSubcommandError naming the first argument.
        - merge persistent flags and parse; on ParseError the target's usage is
          written to the output and the error re-raised.
        - -h/--help prints the target's help instead of running it.
        - otherwise run(target, leftover positional arguments).
        """
        if args is Unset:
            args = coalesce(self._args, sys.argv[1:])
        args = list(args)

        self._init_help_command()
        command, residual = find(self, args)
        if command is None:
            input = args[0] if args else ""
            suggestions = [child.name for child in self._children if not child.hidden]
            if input in suggestions:
                # a lone child name resolves to the root; point at its help instead
                hint = "run '%s help %s' for usage" % (self.name, input)
            elif close := difflib.get_close_matches(input, suggestions, 1):
                hint = "did you mean %r? run '%s help' for usage" % (close[0], self.name)
            else:
                hint = "run '%s help' for usage" % self.name
            trigger(UnknownSubcommandError(
                "unknown subcommand %r" % input if input else "missing subcommand",
                title="unknown subcommand",
                code=FaultCode.UNKNOWN_SUBCOMMAND,
                input=input,
                hint=hint,
                tool=self,
                colorful=self.colorful,
                fancy=self.fancy,
            ))

        self._init_help_flag(command)
        try:
            command.parse_flags(residual)
        except ParseError as error:
            command.usage()
            trigger(error, tool=command, colorful=self.colorful, fancy=self.fancy)

        helper = command.flags.lookup("help")
        if helper is not None and helper.type_name == "bool" and helper.value:
            helper.reset()
            command.help()
            return

        if command.deprecated:
            trigger(DeprecatedCommandWarning(
                "command %r is deprecated, %s" % (command.name, command.deprecated),
                title="deprecated command",
                code=FaultCode.DEPRECATED_COMMAND,
                input=command.name,
                tool=command,
                colorful=self.colorful,
                fancy=self.fancy,
            ))

        logger.debug("running %r with %r", command.command_path, command.flags.args)
        command.run(command, command.flags.args)


def command(source=Unset, /, *, parent=Unset, **kwargs):
    """
    Create a Command from a function or return a decorator to build it later.

    Invocation modes
    - Direct callback:
        cmd = command(func, short="...")
      The use line defaults to the function name, short/long to its docstring.
    - Decorator with a use line:
        @command("serve [flags]", short="...")
        def serve(command, args): ...
    - Bare decorator:
        @command
        def serve(command, args): ...

    parent, when given, receives the new command via add_command().
    """
    if parent is not Unset and not isinstance(parent, Command):
        raise TypeError("command() 'parent' must be a command")

    @rename("command")
    def wrapper(callback, /):
        if not callable(callback):
            raise TypeError("@command() must be applied to a callable")
        doc = inspect.getdoc(callback) or ""
        options = {
            "short": doc.split("\n", 1)[0] if doc else Unset,
            "long": doc or Unset,
        } | kwargs
        use = source if isinstance(source, str) else callback.__name__
        child = Command(use, run=callback, **options)
        if parent is not Unset:
            parent.add_command(child)
        return child

    if source is Unset or isinstance(source, str):
        return wrapper
    return wrapper(source)


def invoke(commander, prompt=Unset, /):
    """
    Run a Commander at the process boundary.

    Parameters
    - prompt:
      • Unset: the commander's own defaults (set_args() or sys.argv[1:]).
      • str: shell-like string; split via shlex.split.
      • Iterable[str]: pre-tokenized sequence.

    Behavior
    - Faults (CommandException) are rendered with rich on the commander's
      console and the process exits with status 1.
    """
    if not isinstance(commander, Commander):
        raise TypeError("invoke() first argument must be a commander")

    if prompt is Unset:
        tokens = Unset
    elif isinstance(prompt, str):
        tokens = shlex.split(prompt)
    elif isinstance(prompt, Iterable):
        tokens = list(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("invoke() argument must be a string or an iterable of strings")
    else:
        raise TypeError("invoke() argument must be a string or an iterable of strings")

    try:
        commander.execute(tokens)
    except CommandException as fault:
        commander.console.print(fault)
        sys.exit(1)


__all__ = (
    "Command",
    "Commander",
    "command",
    "find",
    "invoke",
)
