"""
Errors and warnings reported to the person running the program.

Every fault carries a message and free-form options (code, title, hint, the
command it happened on, the offending input...). It renders itself with rich:

    [ app — 11112 | Unknown Flag ]
    unknown flag '--prot' at second position
     → did you mean '--port'?

Faults are surfaced through trigger(fault, **options), which merges the
options into a copy of the fault and then raises it (CommandException) or
emits it through warnings.warn (CommandWarning).

SelfParentingError is different: it flags a broken command tree while the
program is being wired, so it is a ValueError and never rendered.

Host hooks, read from __main__ when present
- __styles__: style overrides by part name ("code", "hint", "error-title"...).
- __codes__: labels replacing numeric fault codes.
- __prog__: program name shown in headers.
"""
import inspect
import warnings
from abc import ABC
from enum import IntEnum
from types import MappingProxyType

from rich.console import Group
from rich.panel import Panel
from rich.text import Text

from .utils import Unset, coalesce


def _host(name, default):
    return getattr(__import__("__main__"), name, default)


class FaultCode(IntEnum):
    """
    Stable numeric identifiers of every fault.

    1110x routing, 1111x-1112x flag parsing, 121xx warnings.
    """
    EMPTY_TREE                  = 11100
    UNKNOWN_SUBCOMMAND          = 11102

    MALFORMED_FLAG              = 11111
    UNKNOWN_FLAG                = 11112
    MISSING_VALUE               = 11117
    INVALID_VALUE               = 11124

    DEPRECATED_FLAG             = 12112
    DEPRECATED_COMMAND          = 12113

    def normalize(self):
        """
        Label of this code: the host's __codes__ entry, else the number.
        """
        return str(_host("__codes__", {}).get(self, self.value))


class Fault:
    """
    Message + options behaviour shared by CommandException and CommandWarning.

    Options are read-only and also readable as attributes (fault.hint).
    Subclass families set __palette__ (style per part) and __kind__ (the
    prefix of their title and message styles).
    """
    __palette__ = {}
    __kind__ = "error"

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError("fault message must be a string")
        super().__init__(coalesce(message, ""))
        self.message = coalesce(message, "")
        self.options = MappingProxyType(options)

    def __getattr__(self, name):
        options = self.__dict__.get("options", {})
        if name in options:
            return options[name]
        raise AttributeError(name)

    def __replace__(self, **overrides):
        return type(self)(self.message, **(dict(self.options) | overrides))

    def __rich__(self):
        colorful = self.options.get("colorful", True)
        styles = self.__palette__ | _host("__styles__", {})

        def styled(fragment, part):
            return Text(str(fragment), styles.get(part, "") if colorful else "")

        tool = self.options.get("tool")
        prog = _host("__prog__", tool.root.name if tool is not None else "taipan")
        code = self.options.get("code")
        title = str(self.options.get("title", type(self).__name__)).title()

        header = Text.assemble(
            "[ ", styled(prog, "prog-name"),
            " — ", styled(code.normalize() if code is not None else "?", "code"),
            " | ", styled(title, self.__kind__ + "-title"),
            " ]",
        )
        lines = [styled(self.message, self.__kind__ + "-message")]
        if hint := self.options.get("hint"):
            lines.append(Text.assemble(styled(" → ", "hint-arrow"), styled(hint, "hint")))

        if self.options.get("fancy", False):
            return Panel(Group(*lines), title=header, title_align="left")
        return Group(header, *lines)


class CommandException(Fault, Exception):
    """
    Base of every error raised while dispatching.

    Common options: tool (command), code (FaultCode), title, hint, input,
    index, colorful, fancy.
    """
    __palette__ = {
        "prog-name": "bold #E6E6F0",
        "code": "bold #00E5FF",
        "error-title": "bold #FF4DA6",
        "error-message": "#C8C8D0",
        "hint-arrow": "dim #9CE19C",
        "hint": "italic #9CE19C",
    }

    def __trigger__(self):
        raise self from None


class EmptyTreeError(CommandException): ...
class UnknownSubcommandError(CommandException): ...


class ParseError(CommandException):
    """
    Raised by FlagSet.parse() for the first token it can't bind.
    """


class MalformedFlagError(ParseError): ...
class UnknownFlagError(ParseError): ...
class MissingValueError(ParseError): ...
class InvalidValueError(ParseError): ...


class SelfParentingError(ValueError):
    """
    A command would become its own ancestor or gain a second parent.
    """


class CommandWarning(Fault, ABC, Warning):
    __kind__ = "warning"
    __palette__ = {
        "prog-name": "bold #E6E6F0",
        "code": "bold #FFB400",
        "warning-title": "bold #FFC2E0",
        "warning-message": "#D6D6DE",
        "hint-arrow": "dim #B8EFAF",
        "hint": "italic #B8EFAF",
    }

    def __trigger__(self):
        # outermost frame
        warnings.warn(self, stacklevel=len(inspect.stack()))


class DeprecatedFlagWarning(CommandWarning): ...
class DeprecatedCommandWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    Surface fault with options merged in: raise errors, warn warnings.
    """
    if not callable(getattr(fault, "__trigger__", None)) or not callable(getattr(fault, "__replace__", None)):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


__all__ = (
    "CommandException",
    "EmptyTreeError",
    "UnknownSubcommandError",
    "ParseError",
    "MalformedFlagError",
    "UnknownFlagError",
    "MissingValueError",
    "InvalidValueError",
    "SelfParentingError",
    "CommandWarning",
    "DeprecatedFlagWarning",
    "DeprecatedCommandWarning",
    "FaultCode",
    "trigger",
)
