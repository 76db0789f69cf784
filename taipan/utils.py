"""
Small helpers shared by the flag, command and rendering layers.

- Unset / UnsetType: the "argument not given" marker, so None can stay a real value.
- coalesce(value, default): Unset becomes default; None, 0 and "" are kept.
- rename(): give generated callables readable __name__/__qualname__.
- mirror(): read-only property over a "_name" backing field that hands out
  copies of containers.
- ordinal(): "first", "second", ..., "11th", "22nd" for position-first messages.
- IntrospectiveType: metaclass adding __typename__, mirrored properties and
  a stable repr to flags and commands.

    >>> coalesce(Unset, "fallback"), coalesce(None, "fallback")
    ('fallback', None)
    >>> ordinal(3), ordinal(12), ordinal(22)
    ('third', '12th', '22nd')
"""
import builtins
import re
from collections.abc import Mapping, Sequence, Set
from typing import final

_ORDINAL_WORDS = (
    "first",
    "second",
    "third",
    "fourth",
    "fifth",
    "sixth",
    "seventh",
    "eighth",
    "ninth",
    "tenth",
)


@final
class UnsetType:
    """
    Type of the Unset marker.

    There is exactly one instance; calling UnsetType() returns it. The marker
    is falsy, prints as "Unset", survives copy/pickle as itself and cannot be
    subclassed. It also joins PEP 604 unions so isinstance(x, str | Unset)
    reads naturally.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __reduce__(self):
        return "Unset"

    def __copy__(self):
        return self

    def __deepcopy__(self, memo):
        return self

    def __or__(self, other, /):
        try:
            return type(self) | other
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented


Unset = UnsetType()


def coalesce(object, default=None, /):
    """
    Return default when object is Unset, object otherwise.
    """
    if object is Unset:
        return default
    return object


def rename(target, name=Unset, /):
    """
    Set __name__ and __qualname__ of a callable.

    rename(function, "name") renames in place and returns function;
    rename("name") returns a decorator doing the same.
    """
    if name is Unset:
        if not isinstance(target, str):
            raise TypeError("@rename() argument must be a string")
        return rename(lambda function: rename(function, target), "rename")

    if not builtins.callable(target):
        raise TypeError("rename() first argument must be callable")
    if not isinstance(name, str):
        raise TypeError("rename() second argument must be a string")
    try:
        target.__name__ = target.__qualname__ = name
    except (AttributeError, TypeError):
        raise TypeError(f"rename() can't rename {type(target).__name__!r} objects") from None
    return target


def _snapshot(value):
    """
    Copy containers recursively (strings excluded); other values pass through.
    """
    match value:
        case str():
            return value
        case Mapping():
            return {key: _snapshot(item) for key, item in value.items()}
        case Set():
            return {_snapshot(item) for item in value}
        case Sequence():
            return [_snapshot(item) for item in value]
        case _:
            return value


def mirror(name, /):
    """
    Read-only property returning a snapshot of self._<name>.
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")
    attribute = "_" + name

    def getter(self):
        return _snapshot(getattr(self, attribute))

    return property(rename(getter, name))


def ordinal(number, /):
    """
    Ordinal label of a 1-based position: words up to ten, then "11th", "21st"...
    """
    if 1 <= number <= len(_ORDINAL_WORDS):
        return _ORDINAL_WORDS[number - 1]
    if number % 100 in (11, 12, 13):
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")
    return f"{number}{suffix}"


def _typename(name):
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "-", name).lower()


def _fields(self):
    cls = type(self)
    for name in coalesce(cls.__displayable__, cls.__introspectable__):
        yield name, getattr(self, name)


def _repr(self):
    return "%s(%s)" % (
        type(self).__typename__,
        ", ".join("%s=%r" % field for field in _fields(self)),
    )


class IntrospectiveType(type):
    """
    Metaclass of Flag and Command.

    For a class it creates
    - __typename__: class name in lowercase, words split by hyphens
      ("FlagSet" -> "flag-set"), used in messages.
    - one mirror() property per name listed in the class' own
      __introspectable__.
    - __repr__ and __rich_repr__ listing __displayable__ (falling back to
      __introspectable__).
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        namespace = dict(namespace)
        namespace["__typename__"] = _typename(name)
        for field in namespace.get("__introspectable__", ()):
            namespace.setdefault(field, mirror(field))
        namespace.setdefault("__repr__", rename(lambda self: _repr(self), "__repr__"))
        namespace.setdefault("__rich_repr__", rename(lambda self: _fields(self), "__rich_repr__"))
        return super().__new__(cls, name, bases, namespace, **options)


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "ordinal",

    # Types
    "UnsetType",
    "IntrospectiveType",

    # Constants
    "Unset",
)
