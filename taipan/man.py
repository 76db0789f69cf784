"""
Man page generation.

A man page is assembled from sections computed once per command and emitted
either as markdown (gen_markdown) or as roff (gen_man). gen_man_tree writes a
roff page for a command and every descendant into a directory, one file per
command named after its dashed command path ("app-serve.1").

Sections, in order
- NAME, SYNOPSIS, DESCRIPTION (long description, falling back to short)
- OPTIONS (flags defined on the command, persistent ones included)
- OPTIONS INHERITED FROM PARENT COMMANDS
- EXAMPLE (when the command has example text)
- SEE ALSO (parent page, then children by name)
- HISTORY

Deprecated commands and the commander's help command get no page and are not
referenced from SEE ALSO. Deprecated and hidden flags are not listed.
"""
import datetime
import logging
import os.path

from .utils import Unset

logger = logging.getLogger(__name__)


def _dashed(path):
    return path.replace(" ", "-")


def _skipped(command):
    if command.deprecated:
        return True
    commander = command.commander
    return commander is not None and command is getattr(commander, "help_command", None)


def _flag_entries(flags):
    """
    Yield (shorthand, name, value, usage) for every listed flag; value already
    carries the "=..." / "[=...]" suffix.
    """
    for flag in flags:
        if flag.deprecated or flag.hidden:
            continue
        value = '"%s"' % flag.default_text if flag.type_name == "string" else flag.default_text
        value = "=" + value
        if flag.no_opt_default is not None:
            value = "[%s]" % value
        yield flag.shorthand, flag.name, value, flag.usage


def _see_also(command):
    references = []
    if command.parent is not None:
        references.append(_dashed(command.parent.command_path))
    for child in sorted(command.children, key=lambda child: child.name):
        if _skipped(child):
            continue
        references.append("%s-%s" % (_dashed(command.command_path), child.name))
    return references


def _date(date):
    if date is Unset:
        return datetime.datetime.now(datetime.timezone.utc)
    return date


def gen_markdown(command, project, /, *, date=Unset):
    """
    Render the markdown source of command's man page.

    Parameters
    - project: project name shown in the title line.
    - date: datetime used in HISTORY (defaults to now, UTC).
    """
    path = command.command_path
    long = command.long or command.short
    buffer = [
        "%% %s(1)\n" % project,
        "# NAME\n",
        "%s \\- %s\n\n" % (path, command.short),
        "# SYNOPSIS\n",
        "**%s** [OPTIONS]\n\n" % path,
        "# DESCRIPTION\n",
        "%s\n\n" % long,
    ]

    for title, flags in (
            ("OPTIONS", command.non_inherited_flags()),
            ("OPTIONS INHERITED FROM PARENT COMMANDS", command.inherited_flags()),
    ):
        entries = list(_flag_entries(flags))
        if not entries:
            continue
        buffer.append("# %s\n" % title)
        for shorthand, name, value, usage in entries:
            if shorthand:
                buffer.append("**-%s**, **--%s**%s\n\t%s\n\n" % (shorthand, name, value, usage))
            else:
                buffer.append("**--%s**%s\n\t%s\n\n" % (name, value, usage))
        buffer.append("\n")

    if command.example:
        buffer.append("# EXAMPLE\n")
        buffer.append("```\n%s\n```\n" % command.example)

    if references := _see_also(command):
        buffer.append("# SEE ALSO\n")
        buffer.append("".join("**%s(1)**, " % reference for reference in references))
        buffer.append("\n")

    buffer.append("# HISTORY\n%s Auto generated by taipan\n" % _date(date).strftime("%d-%b-%Y"))
    return "".join(buffer)


def _escape(text):
    """
    Escape text for roff: backslashes, dashes and control characters at line start.
    """
    text = text.replace("\\", "\\e").replace("-", "\\-")
    lines = []
    for line in text.split("\n"):
        if line.startswith((".", "'")):
            line = "\\&" + line
        lines.append(line)
    return "\n".join(lines)


def gen_man(command, project, /, *, date=Unset):
    """
    Render command's man page as roff (section 1).
    """
    date = _date(date)
    path = command.command_path
    long = command.long or command.short

    buffer = [
        '.TH "%s" "1" "%s" "%s" "%s Manual"\n' % (
            _escape(_dashed(path).upper()), date.strftime("%b %Y"), _escape(project), _escape(project)
        ),
        ".nh\n",
        ".ad l\n",
        "\n.SH NAME\n.PP\n%s \\- %s\n" % (_escape(path), _escape(command.short)),
        "\n.SH SYNOPSIS\n.PP\n\\fB%s\\fP [OPTIONS]\n" % _escape(path),
        "\n.SH DESCRIPTION\n.PP\n%s\n" % _escape(long),
    ]

    for title, flags in (
            ("OPTIONS", command.non_inherited_flags()),
            ("OPTIONS INHERITED FROM PARENT COMMANDS", command.inherited_flags()),
    ):
        entries = list(_flag_entries(flags))
        if not entries:
            continue
        buffer.append("\n.SH %s\n" % title)
        for shorthand, name, value, usage in entries:
            if shorthand:
                head = "\\fB-%s\\fP, \\fB--%s\\fP%s" % (shorthand, name, value)
            else:
                head = "\\fB--%s\\fP%s" % (name, value)
            buffer.append(".PP\n%s\n.RS\n%s\n.RE\n" % (head.replace("-", "\\-"), _escape(usage)))

    if command.example:
        buffer.append("\n.SH EXAMPLE\n.PP\n.RS\n.nf\n%s\n.fi\n.RE\n" % _escape(command.example))

    if references := _see_also(command):
        buffer.append("\n.SH SEE ALSO\n.PP\n")
        buffer.append(", ".join("\\fB%s(1)\\fP" % _escape(reference) for reference in references))
        buffer.append("\n")

    buffer.append("\n.SH HISTORY\n.PP\n%s Auto generated by taipan\n" % date.strftime("%d\\-%b\\-%Y"))
    return "".join(buffer)


def gen_man_tree(command, project, directory, /, *, date=Unset):
    """
    Write roff man pages for command and its whole subtree into directory.

    Children are written before their parent. Returns the written paths.
    OSError from the file system propagates.
    """
    written = []
    for child in command.children:
        if _skipped(child):
            continue
        written.extend(gen_man_tree(child, project, directory, date=date))

    filename = os.path.join(directory, _dashed(command.command_path) + ".1")
    with open(filename, "w", encoding="utf-8") as file:
        file.write(gen_man(command, project, date=date))
    logger.debug("wrote man page %s", filename)
    written.append(filename)
    return written


__all__ = (
    "gen_markdown",
    "gen_man",
    "gen_man_tree",
)
