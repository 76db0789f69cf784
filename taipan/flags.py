r"""
Taipan flags: typed flag registration and token parsing.

Overview
- Flag: one named, typed switch with an optional one-letter shorthand. The Flag
  object *is* the storage of its value; every FlagSet the flag is added to
  shares it, so a parse through any of them is visible through all of them.
- FlagSet: an ordered registry of flags that parses a token list into bound
  values plus leftover positional arguments.

Accepted forms
    --name=value    --name value    --bool    --bool=false
    -n value        -nvalue         -n=value  -abc (grouped boolean shorthands)
    --              ends flag parsing; everything after is positional
    -               a lone dash is positional

Positional tokens may be interspersed with flags.

Faults
- MalformedFlagError:  "---x", "--=x", "-=x".
- UnknownFlagError:    no flag registered under the given name or shorthand.
- MissingValueError:   a value-bearing flag is last with no value.
- InvalidValueError:   the converter rejected the value.
Deprecated flags still parse, but emit DeprecatedFlagWarning.

Quick example:
    >>> flags = FlagSet("serve")
    >>> port = flags.integer("port", "p", 8080, "port to listen on")
    >>> flags.parse(["-p", "9000", "static"])
    ['static']
    >>> port.value
    9000
"""
import builtins
import difflib
import re
from collections import deque

from .faults import *
from .utils import *

FILENAME_EXT = "taipan_annotation_filename_ext"
"""Annotation key marking a flag whose value is a file name (values: extensions)."""

_NAME = re.compile(r"[^\W_][\w-]*")

_TRUTHY = frozenset({"1", "t", "T", "true", "TRUE", "True"})
_FALSY = frozenset({"0", "f", "F", "false", "FALSE", "False"})


def _boolean(text):
    if text in _TRUTHY:
        return True
    if text in _FALSY:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def _integer(text):
    return builtins.int(text, 0)


def _strings(text):
    return [part for part in text.split(",")] if text else []


# type -> (converter, type name, zero value)
_KINDS = {
    bool: (_boolean, "bool", False),
    str: (str, "string", ""),
    int: (_integer, "int", 0),
    float: (float, "float", 0.0),
    list: (_strings, "strings", ()),
}


def _text(value):
    """
    String form of a value the way help and man pages print defaults.
    """
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, list | tuple):
        return "[%s]" % ",".join(map(str, value))
    return str(value)


class Flag(metaclass=IntrospectiveType):
    """
    Named, typed flag specification and value holder.

    Highlights
    - name: long name used as --name (validated, non-empty).
    - shorthand: optional single character used as -x.
    - type: one of bool, str, int, float, list (comma separated strings) or any
      callable converter; the converter receives the raw string.
    - default: initial value (defaults to the type's zero value).
    - no_opt_default: value applied when the flag is given without =value
      ("true" for booleans, None otherwise).
    - deprecated: message shown when the flag is used; deprecated flags are left
      out of help, man pages and completion.
    - hidden: still parseable, but never listed.
    - annotations: free-form metadata (see FILENAME_EXT).

    State
    - value: the current value (starts as default).
    - changed: True once the value was set from the command line.
    """

    __introspectable__ = (
        "name",
        "shorthand",
        "usage",
        "type_name",
        "default",
        "no_opt_default",
        "deprecated",
        "hidden",
        "annotations",
    )

    __displayable__ = (
        "name",
        "shorthand",
        "type_name",
        "default",
        "value",
        "changed",
    )

    def __init__(self, name, /, shorthand=None, default=Unset, type=str, usage=""):
        if not isinstance(name, str):
            raise TypeError("flag 'name' must be a string")
        if not _NAME.fullmatch(name):
            raise ValueError(f"flag 'name' {name!r} is not a valid flag name")
        if shorthand is not None:
            if not isinstance(shorthand, str):
                raise TypeError("flag 'shorthand' must be a string")
            if len(shorthand) != 1 or shorthand in "-=":
                raise ValueError(f"flag 'shorthand' {shorthand!r} must be a single character")
        if not isinstance(usage, str):
            raise TypeError("flag 'usage' must be a string")

        try:
            converter, type_name, zero = _KINDS[type]
        except (KeyError, TypeError):
            if not callable(type):
                raise TypeError("flag 'type' must be callable") from None
            converter, type_name, zero = type, getattr(type, "__name__", "value"), None

        self._name = name
        self._shorthand = shorthand
        self._usage = usage
        self._type = type
        self._converter = converter
        self._type_name = type_name
        self._default = coalesce(default, zero)
        self._no_opt_default = "true" if type is bool else None
        self._deprecated = None
        self._hidden = False
        self._annotations = {}

        self.value = list(self._default) if type is list else self._default
        self.changed = False

    @property
    def default_text(self):
        return _text(self._default)

    @property
    def zero(self):
        """
        True when the default is the zero value of the flag's type (not shown in help).
        """
        return not self._default

    def set(self, text, /):
        """
        Convert text and store it; list flags accumulate across repetitions.

        Raises ValueError/TypeError from the converter unchanged.
        """
        value = self._converter(text)
        if self._type is list and self.changed:
            self.value = self.value + value
        else:
            self.value = value
        self.changed = True

    def reset(self):
        self.value = list(self._default) if self._type is list else self._default
        self.changed = False


class FlagSet:
    """
    Ordered registry of flags and the parser that binds tokens to them.

    Registration
    - flag(name, shorthand, default, type, usage) builds and adds a Flag.
    - boolean/string/integer/floating/strings are typed shortcuts.
    - add_flag(flag) adds an existing Flag object (shared storage).

    Lookup and iteration
    - lookup(name), shorthand_lookup(letter), name in flags.
    - visit_all(fn) calls fn for every flag sorted by name; visit(fn) only for
      flags changed by the last parse.

    Parsing
    - parse(tokens) binds values and returns the positional leftovers, also
      available afterwards as .args.
    """

    def __init__(self, name="", /):
        self.name = name
        self._formal = {}
        self._shorthands = {}
        self._args = []
        self._parsed = False

    def __repr__(self):
        return f"flag-set(name={self.name!r}, flags={sorted(self._formal)!r})"

    def __contains__(self, name):
        return name in self._formal

    def __iter__(self):
        return iter([self._formal[name] for name in sorted(self._formal)])

    def __len__(self):
        return len(self._formal)

    @property
    def args(self):
        return list(self._args)

    @property
    def parsed(self):
        return self._parsed

    def add_flag(self, flag, /, *, strict=True):
        """
        Register an existing Flag object.

        - A name already in use raises ValueError.
        - A shorthand already bound to another flag raises ValueError when
          strict; otherwise the existing binding wins and the new flag is
          reachable by its long name only.
        """
        if not isinstance(flag, Flag):
            raise TypeError("add_flag() argument must be a flag")
        if flag.name in self._formal:
            raise ValueError(f"{self.name or 'flag set'} flag redefined: {flag.name!r}")
        if flag.shorthand is not None and flag.shorthand in self._shorthands:
            if strict:
                raise ValueError(
                    f"unable to redefine {flag.shorthand!r} shorthand in {self.name or 'flag set'}: "
                    f"it's already used for {self._shorthands[flag.shorthand].name!r} flag"
                )
        elif flag.shorthand is not None:
            self._shorthands[flag.shorthand] = flag
        self._formal[flag.name] = flag
        return flag

    def flag(self, name, /, shorthand=None, default=Unset, type=str, usage=""):
        return self.add_flag(Flag(name, shorthand, default, type, usage))

    def boolean(self, name, /, shorthand=None, default=False, usage=""):
        return self.flag(name, shorthand, default, bool, usage)

    def string(self, name, /, shorthand=None, default="", usage=""):
        return self.flag(name, shorthand, default, str, usage)

    def integer(self, name, /, shorthand=None, default=0, usage=""):
        return self.flag(name, shorthand, default, int, usage)

    def floating(self, name, /, shorthand=None, default=0.0, usage=""):
        return self.flag(name, shorthand, default, float, usage)

    def strings(self, name, /, shorthand=None, default=(), usage=""):
        return self.flag(name, shorthand, list(default), list, usage)

    def lookup(self, name, /):
        return self._formal.get(name)

    def shorthand_lookup(self, shorthand, /):
        return self._shorthands.get(shorthand)

    def has_flags(self):
        return len(self._formal) > 0

    def has_available_flags(self):
        """
        True when at least one flag would be listed in help (not hidden, not deprecated).
        """
        return any(not flag.hidden and not flag.deprecated for flag in self._formal.values())

    def visit_all(self, callback, /):
        for flag in self:
            callback(flag)

    def visit(self, callback, /):
        for flag in self:
            if flag.changed:
                callback(flag)

    def _require(self, name):
        try:
            return self._formal[name]
        except KeyError:
            raise KeyError(f"flag {name!r} does not exist") from None

    def set(self, name, text, /):
        """
        Set a flag from its string form, as if given on the command line.
        """
        self._require(name).set(text)

    def mark_deprecated(self, name, message, /):
        if not isinstance(message, str) or not message.strip():
            raise ValueError(f"deprecated message for flag {name!r} must be set")
        self._require(name)._deprecated = message.strip()

    def mark_hidden(self, name, /):
        self._require(name)._hidden = True

    def set_annotation(self, name, key, values, /):
        self._require(name)._annotations[key] = list(values)

    def mark_filename(self, name, /, *extensions):
        """
        Hint shells that the flag takes a file name, optionally limited to extensions.
        """
        self.set_annotation(name, FILENAME_EXT, extensions)

    def _assign(self, flag, input, text, index):
        try:
            flag.set(text)
        except (TypeError, ValueError) as error:
            trigger(InvalidValueError(
                "invalid value %r for flag %r at %s position" % (text, input, ordinal(index)),
                title="invalid value",
                code=FaultCode.INVALID_VALUE,
                input=input,
                index=index,
                flag=flag,
                hint="%s expects a %s value (%s)" % (input, flag.type_name, error),
            ))
        if flag.deprecated:
            trigger(DeprecatedFlagWarning(
                "flag %r at %s position has been deprecated, %s" % (input, ordinal(index), flag.deprecated),
                title="deprecated flag",
                code=FaultCode.DEPRECATED_FLAG,
                input=input,
                index=index,
                flag=flag,
            ))

    def _missing(self, flag, input, index):
        trigger(MissingValueError(
            "flag %r at %s position needs a value" % (input, ordinal(index)),
            title="missing value",
            code=FaultCode.MISSING_VALUE,
            input=input,
            index=index,
            flag=flag,
            hint="use %s=<%s> or %s <%s>" % (input, flag.type_name, input, flag.type_name),
        ))

    def _unknown(self, input, index, candidates):
        suggestions = difflib.get_close_matches(input, candidates, 3)
        try:
            hint = "did you mean %r?" % suggestions[0]
        except IndexError:
            hint = "remove it or check the available flags with --help"
        trigger(UnknownFlagError(
            "unknown flag %r at %s position" % (input, ordinal(index)),
            title="unknown flag",
            code=FaultCode.UNKNOWN_FLAG,
            input=input,
            index=index,
            suggestions=suggestions,
            hint=hint,
        ))

    def _malformed(self, input, index):
        trigger(MalformedFlagError(
            "bad flag syntax %r at %s position" % (input, ordinal(index)),
            title="malformed flag",
            code=FaultCode.MALFORMED_FLAG,
            input=input,
            index=index,
            hint="flags look like --name, --name=value or -n",
        ))

    def _parse_long(self, token, tokens, index):
        body = token[2:]
        if not body or body[0] in "-=":
            self._malformed(token, index)

        name, assigned, text = body.partition("=")
        input = "--" + name
        if (flag := self.lookup(name)) is None:
            self._unknown(input, index, ["--" + name for name in self._formal])

        start = index
        if assigned:
            pass
        elif flag.no_opt_default is not None:
            text = flag.no_opt_default
        elif tokens:
            text = tokens.popleft()
            index += 1
        else:
            self._missing(flag, input, start)
        self._assign(flag, input, text, start)
        return index

    def _parse_shorts(self, token, tokens, index):
        shorts = token[1:]
        start = index
        while shorts:
            letter = shorts[0]
            if letter == "=":
                self._malformed(token, start)
            input = "-" + letter
            if (flag := self.shorthand_lookup(letter)) is None:
                self._unknown(input, start, ["-" + letter for letter in self._shorthands])

            if len(shorts) > 2 and shorts[1] == "=":
                self._assign(flag, input, shorts[2:], start)
                return index
            if flag.no_opt_default is not None:
                if len(shorts) == 2 and shorts[1] == "=":
                    self._missing(flag, input, start)
                self._assign(flag, input, flag.no_opt_default, start)
                shorts = shorts[1:]
                continue
            if len(shorts) > 1:
                self._assign(flag, input, shorts[2:] if shorts[1] == "=" else shorts[1:], start)
                return index
            if not tokens:
                self._missing(flag, input, start)
            index += 1
            self._assign(flag, input, tokens.popleft(), start)
            return index
        return index

    def parse(self, tokens, /):
        """
        Bind flag values from tokens and collect positional arguments.

        Returns the positional leftovers (also available as .args afterwards).
        Raises a ParseError subclass on the first faulty token.
        """
        self._parsed = True
        self._args = []

        tokens = deque(tokens)
        index = 0
        while tokens:
            token = tokens.popleft()
            index += 1
            if token == "--":
                self._args.extend(tokens)
                break
            if len(token) < 2 or not token.startswith("-"):
                self._args.append(token)
                continue
            if token.startswith("--"):
                index = self._parse_long(token, tokens, index)
            else:
                index = self._parse_shorts(token, tokens, index)
        return self.args

    def flag_usages(self):
        """
        Render the visible flags as aligned help lines.

        Layout (one flag per line, usage column aligned):
              -d, --debug            enable debug output
                  --port int         port to listen on (default 8080)
        """
        lines = []
        for flag in self:
            if flag.hidden or flag.deprecated:
                continue
            line = ("  -%s, --%s" % (flag.shorthand, flag.name)) if flag.shorthand else ("      --%s" % flag.name)
            if flag.type_name != "bool":
                line += " " + flag.type_name
            usage = flag.usage
            if not flag.zero:
                usage += " (default %s)" % (
                    '"%s"' % flag.default_text if flag.type_name == "string" else flag.default_text
                )
            lines.append((line, usage))

        if not lines:
            return ""
        width = max(len(line) for line, _ in lines)
        return "".join("%s   %s\n" % (line.ljust(width), usage) for line, usage in lines)


__all__ = (
    "FILENAME_EXT",
    "Flag",
    "FlagSet",
)
