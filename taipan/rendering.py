"""
Usage and help renderers.

Both renderers are pure: they read a finished command tree and return text.
They never print and never mutate the tree, so a Commander can swap them
(usage_func / help_func) and tests can assert on the returned strings.

Layout of render_usage(command)

    app serve   :: start the server
    Usage:
        app serve [flags]

    Flags:
      -p, --port int   port to listen on (default 8080)

    Global Flags:
      -d, --debug   enable debug output

Commands with children also list runnable children ("The commands are:")
and non-runnable ones ("Additional help topics:").
"""


def _pad(text, width):
    return text.ljust(width)


def _help_route(command, placeholder):
    """
    The "<root> help <path...> [placeholder]" hint shown under listings.
    """
    names = [step.name for step in command.path]
    return " ".join([names[0], "help", *names[1:], placeholder])


def render_usage(command, /, *, width=11):
    """
    Render the usage block of command.

    Parameters
    - width: minimum width of the name column in listings.
    """
    local = command.non_inherited_flags()
    inherited = command.inherited_flags()
    children = [child for child in command.children if not child.hidden]
    runnables = [child for child in children if child.runnable]
    topics = [child for child in children if not child.runnable]

    lines = ["%s :: %s" % (_pad(command.command_path, width), command.short), "Usage:"]

    synopsis = "    " + command.use_line
    if len(children) > 0:
        synopsis += " command"
    if local.has_available_flags() or inherited.has_available_flags():
        synopsis += " [flags]"
    lines.append(synopsis)

    if len(runnables) > 0:
        lines.append("")
        lines.append("The commands are:")
        for child in runnables:
            lines.append("    %s %s" % (_pad(child.use_line, width), child.short))
        lines.append('Use "%s" for more information about a command.' % _help_route(command, "[command]"))

    if local.has_available_flags():
        lines.append("")
        lines.append("Flags:")
        lines.append(local.flag_usages().rstrip("\n"))

    if inherited.has_available_flags():
        lines.append("")
        lines.append("Global Flags:")
        lines.append(inherited.flag_usages().rstrip("\n"))

    if len(topics) > 0:
        lines.append("")
        lines.append("Additional help topics:")
        for child in topics:
            lines.append("    %s %s" % (_pad(child.command_path, width), child.short))
        lines.append('Use "%s" for more information about that topic.' % _help_route(command, "[topic]"))

    return "\n".join(lines) + "\n"


def render_help(command, /, *, width=11):
    """
    Render the long description of command followed by its usage block.

    The long description falls back to the short one; surrounding whitespace
    is trimmed.
    """
    description = (command.long or command.short).strip()
    usage = render_usage(command, width=width)
    if not description:
        return usage
    return description + "\n\n" + usage


__all__ = (
    "render_usage",
    "render_help",
)
