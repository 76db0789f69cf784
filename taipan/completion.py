"""
Zsh completion script generation.

gen_zsh_completion(command) returns a "#compdef" script with one shell
function per visible command. Functions are named after the command path
("_app_serve"); a command with visible children dispatches to the function
of the child named by the first word:

    function _app {
      local -a commands

      _arguments -C \\
        "(-d --debug)"{-d,--debug}"[enable debug output]" \\
        "1: :->cmnds" \\
        "*::arg:->args"

      case $state in
      cmnds)
        commands=(
          "help:Help about any command"
          "serve:start the server"
        )
        _describe "command" commands
        ;;
      esac

      case "$words[1]" in
      serve)
        _app_serve
        ;;
      esac
    }

Hidden and deprecated commands and flags never show up.
"""
import logging
import re

from .flags import FILENAME_EXT

logger = logging.getLogger(__name__)

_SPECIALS = re.compile(r'([\[\]"$`\\])')


def _escape(text):
    return _SPECIALS.sub(r"\\\1", text)


def _visible(command):
    return not command.hidden and not command.deprecated


def _function(command):
    return "_" + command.command_path.replace(" ", "_").replace("-", "_")


def extract_flags(command, /):
    """
    Flags completed for command: its own flags, then the ones it inherits.
    """
    flags = []
    for source in (command.non_inherited_flags(), command.inherited_flags()):
        flags.extend(flag for flag in source if not flag.hidden and not flag.deprecated)
    return flags


def _flag_entry(flag):
    extras = ":filename:_files" if FILENAME_EXT in flag.annotations else ""
    multiple = "*" if flag.type_name == "strings" else ""
    if flag.shorthand:
        return '%s"(-%s --%s)"{-%s,--%s}"[%s]%s"' % (
            multiple, flag.shorthand, flag.name, flag.shorthand, flag.name, _escape(flag.usage), extras
        )
    return '%s"--%s[%s]%s"' % (multiple, flag.name, _escape(flag.usage), extras)


def _help_entry(command):
    """
    The -h/--help entry execute() would add to command.
    """
    usage = _escape("help for %s" % command.name)
    taken = any(flag.shorthand == "h" for flag in extract_flags(command))
    if taken:
        return '"--help[%s]"' % usage
    return '"(-h --help)"{-h,--help}"[%s]"' % usage


def _arguments(command):
    """
    _arguments entries of command; help always comes last.
    """
    flags = extract_flags(command)
    entries = [_flag_entry(flag) for flag in flags if flag.name != "help"]
    helpers = [_flag_entry(flag) for flag in flags if flag.name == "help"]
    return entries + (helpers or [_help_entry(command)])


def _leaf(command):
    lines = ["function %s {" % _function(command)]
    entries = _arguments(command)
    if entries:
        lines.append("  _arguments \\")
        lines.append("    " + " \\\n    ".join(entries))
    lines.append("}")
    return "\n".join(lines)


def _branch(command, children):
    entries = _arguments(command) + ['"1: :->cmnds"', '"*::arg:->args"']
    lines = [
        "function %s {" % _function(command),
        "  local -a commands",
        "",
        "  _arguments -C \\",
        "    " + " \\\n    ".join(entries),
        "",
        "  case $state in",
        "  cmnds)",
        "    commands=(",
    ]
    lines.extend('      "%s:%s"' % (child.name, _escape(child.short)) for child in children)
    lines.extend([
        "    )",
        '    _describe "command" commands',
        "    ;;",
        "  esac",
        "",
        '  case "$words[1]" in',
    ])
    for child in children:
        lines.append("  %s)" % child.name)
        lines.append("    %s" % _function(child))
        lines.append("    ;;")
    lines.append("  esac")
    lines.append("}")
    return "\n".join(lines)


def _functions(command):
    children = sorted((child for child in command.children if _visible(child)), key=lambda child: child.name)
    yield _branch(command, children) if children else _leaf(command)
    for child in children:
        yield from _functions(child)


def gen_zsh_completion(command, /):
    """
    Return the zsh completion script for the tree rooted at command.
    """
    root = command.root
    if command is not root:
        logger.debug("generating zsh completion from %r instead of %r", root.name, command.name)
    functions = list(_functions(root))
    logger.debug("generated %d zsh completion functions for %r", len(functions), root.name)
    return "#compdef %s %s\n\n%s\n" % (_function(root), root.name, "\n\n".join(functions))


__all__ = (
    "extract_flags",
    "gen_zsh_completion",
)
