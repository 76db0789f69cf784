"""
Scaffolding helpers for generating new command modules on disk.

A Scaffold is configured with the directories new projects are looked up in
(search paths); nothing is read from the environment unless
Scaffold.from_environment() is called explicitly.

    >>> scaffold = Scaffold(["/work/src"])
    >>> source = scaffold.execute_template("# {{ name }}\\n", {"name": "serve"})
    >>> scaffold.write_string_to_file("/work/src/app/commands/serve.py", source)

Templates are rendered with jinja2. The "comment" filter turns text into a "#"
comment block ({{ license.text | comment }}); an undefined name raises
jinja2.UndefinedError.
"""
import logging
import os
import os.path

from jinja2 import Environment, StrictUndefined

logger = logging.getLogger(__name__)


def commentify_string(text, /):
    """
    Turn text into a block of "#" comments.

    Lines already starting with "#" are kept, empty lines become a bare "#".
    """
    lines = []
    for line in text.split("\n"):
        if line.startswith("#"):
            lines.append(line)
        elif line == "":
            lines.append("#")
        else:
            lines.append("# " + line)
    return "\n".join(lines)


class Scaffold:
    """
    File helpers bound to an explicit list of search paths.

    Attributes
    - search_paths: directories projects live in, in lookup order.
    - command_dirs: directory names a project keeps its commands in.
    """

    command_dirs = ("cmd", "cmds", "command", "commands")
    commentify_string = staticmethod(commentify_string)

    def __init__(self, search_paths, /):
        search_paths = [path for path in search_paths if path]
        if not search_paths:
            raise ValueError("scaffold 'search_paths' must not be empty")
        self.search_paths = tuple(search_paths)

    def __repr__(self):
        return f"scaffold(search_paths={list(self.search_paths)!r})"

    @classmethod
    def from_environment(cls, environ=None, /, *, variable="PYTHONPATH"):
        """
        Build a Scaffold from a path list variable (os.pathsep separated).
        """
        environ = os.environ if environ is None else environ
        value = environ.get(variable, "")
        if not value:
            raise ValueError(f"${variable} is not set")
        return cls(value.split(os.pathsep))

    @staticmethod
    def exists(path, /):
        """
        True when path names an existing file or directory; "" never exists.
        """
        if not path:
            return False
        try:
            os.stat(path)
        except FileNotFoundError:
            return False
        return True

    @staticmethod
    def is_empty(path, /):
        """
        True for an empty directory or a zero-length file.

        OSError (including a missing path) propagates.
        """
        if os.path.isdir(path):
            with os.scandir(path) as entries:
                return next(entries, None) is None
        return os.stat(path).st_size == 0

    def project_path(self, project, /):
        """
        Absolute path of project: as given when absolute, else the first search
        path containing it (the first search path when none does).
        """
        if os.path.isabs(project):
            return project
        for root in self.search_paths:
            if self.exists(candidate := os.path.join(root, project)):
                return candidate
        return os.path.join(self.search_paths[0], project)

    def command_dir(self, project, /):
        """
        Directory holding the commands of project.

        An existing "cmd", "cmds", "command" or "commands" directory is reused;
        otherwise "cmd" is proposed.
        """
        base = self.project_path(project)
        for name in self.command_dirs:
            if os.path.isdir(candidate := os.path.join(base, name)):
                logger.debug("using existing command directory %s", candidate)
                return candidate
        return os.path.join(base, self.command_dirs[0])

    @staticmethod
    def _environment():
        environment = Environment(keep_trailing_newline=True, undefined=StrictUndefined)
        environment.filters["comment"] = commentify_string
        return environment

    @classmethod
    def execute_template(cls, template, data, /):
        """
        Render template (jinja2 source) with data.

        Filters: comment (see commentify_string).
        """
        return cls._environment().from_string(template).render(data)

    def write_string_to_file(self, path, text, /):
        self.safe_write_to_disk(path, text)

    @staticmethod
    def safe_write_to_disk(path, content, /):
        """
        Write content to path, creating parent directories.

        Raises FileExistsError when path already exists; never overwrites.
        content is a string or a readable text stream.
        """
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        if not isinstance(content, str):
            content = content.read()
        with open(path, "x", encoding="utf-8") as file:
            file.write(content)
        logger.debug("wrote %s (%d characters)", path, len(content))


__all__ = (
    "Scaffold",
    "commentify_string",
)
