"""
Conso utilities (internal helpers, carefully exposed)

Scope
- Small building blocks shared by the constraint, command and fault layers.

Overview
- UnsetType / Unset
  • Singleton sentinel for “value not provided” without conflating with None.
  • Falsey, printable as "Unset", and non-subclassable.

- coalesce(value, default=None)
  • Replace Unset with a concrete default, preserving None/0/""/[].

- rename(callable, name) / @rename("name")
  • Assign stable __name__/__qualname__ to generated wrappers.

- mirror("attr")
  • Read-only property exposing a private backing field (self._attr); containers
    are handed out as fresh copies.

- ordinal(number)
  • "first", "second", ..., "11th", "22nd" for position-first messages.

- suggest(word, candidates)
  • Close matches for "did you mean" hints.

Stability and contract
- Names not in __all__ are internal and may change without notice.
"""
import builtins
import difflib
import functools
from collections.abc import Sequence, Mapping, Set
from typing import final


@final
class UnsetType:
    """
    Internal sentinel type representing a value that was not provided.

    Used where None is a legitimate user value (a handler may well be given
    None as its payload) but the API still needs to tell “not provided” apart.
    """

    def __or__(self, other, /):
        """
        Support PEP 604 unions in isinstance checks (e.g., str | Unset).
        """
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    def __ror__(self, other, /):
        try:
            return other | type(self)
        except TypeError:
            return NotImplemented

    @functools.cache
    def __new__(cls):
        return super().__new__(cls)

    def __bool__(self):
        return False

    def __repr__(self):
        return "Unset"

    def __init_subclass__(cls, **options):
        raise TypeError("type 'UnsetType' is not an acceptable base type")


def coalesce(object, default=None, /):
    """
    Resolve the Unset sentinel to a concrete default.

    Falsey values like None, 0, "" or [] are returned as-is; only Unset is
    replaced.

    Examples
    - coalesce("name", "fallback") -> "name"
    - coalesce(Unset, "fallback")  -> "fallback"
    - coalesce(None, "fallback")   -> None
    """
    return object if object is not Unset else default


def rename(*parameters):
    """
    Set a stable __name__/__qualname__ on a callable, or return a decorator
    that will do so later.

    Forms
    - rename(callable, name) -> callable
    - rename(name) -> decorator
    """
    match len(parameters):
        case 2:
            callable, name = parameters
            if not builtins.callable(callable):
                raise TypeError("rename() first argument must be callable")
            if not isinstance(name, str):
                raise TypeError("rename() second argument must be a string")
            try:
                callable.__qualname__ = name
                callable.__name__ = name
            except (AttributeError, TypeError):
                raise TypeError("rename() first argument must be a updatable callable") from None
            return callable
        case 1:
            name, = parameters
            if not isinstance(name, str):
                raise TypeError("@rename() argument must be a string")

            def wrapper(callable):
                if not builtins.callable(callable):
                    raise TypeError("@rename() must be applied to a callable")
                return rename(callable, name)

            return rename(wrapper, "rename")
        case _:
            raise TypeError("rename takes 1 to 2 arguments but %d were given" % len(parameters))


def _immortalize(object):
    """
    Recursively copy container values so callers cannot mutate internal state.

    Tuples are preserved as tuples (constraint operands are positional and
    immutable); other sequences become lists.
    """
    if isinstance(object, tuple):
        return tuple(map(_immortalize, object))
    elif isinstance(object, Sequence) and not isinstance(object, str):
        return list(map(_immortalize, object))
    elif isinstance(object, Mapping):
        return dict(zip(object.keys(), map(_immortalize, object.values())))
    elif isinstance(object, Set):
        return set(map(_immortalize, object))
    return object


def mirror(name, /):
    """
    Define a read-only property that mirrors the private attribute "_{name}".
    """
    if not isinstance(name, str):
        raise TypeError("mirror() argument must be a string")

    @rename(name)
    def getter(self):
        return _immortalize(getattr(self, "_" + name))

    return property(getter)


@functools.cache
def ordinal(number, /):
    """
    Return a human-friendly ordinal label for a 1-based position.

    - 1..10 are rendered as words ("first"…"tenth").
    - Other numbers use numeric ordinals with correct English suffixes.
    """
    if not isinstance(number, int) or isinstance(number, bool):
        raise TypeError("ordinal() argument must be an integer")
    try:
        return {
            1: "first",
            2: "second",
            3: "third",
            4: "fourth",
            5: "fifth",
            6: "sixth",
            7: "seventh",
            8: "eighth",
            9: "ninth",
            10: "tenth",
        }[number]
    except KeyError:
        pass

    # 11th, 12th, 13th (and 111th, 112th, 113th, …)
    if 10 < number % 100 < 20:
        return f"{number}th"

    return f'{number}%s' % {1: "st", 2: "nd", 3: "rd"}.get(number % 10, "th")


def suggest(word, candidates, /, limit=5):
    """
    Return up to `limit` candidates close to `word`, best first.

    Candidates are de-duplicated preserving their first appearance so that
    aliases registered more than once do not crowd the list.
    """
    if not isinstance(word, str):
        raise TypeError("suggest() first argument must be a string")
    return difflib.get_close_matches(word, list(dict.fromkeys(candidates)), limit)


Unset = UnsetType()
"""
Internal sentinel for “not provided”.

- Singleton: there is only one Unset instance.
- Distinct from None: identity checks must not treat it as None.
- Falsey: bool(Unset) is False.
"""


__all__ = (
    # Functions
    "coalesce",
    "rename",
    "mirror",
    "ordinal",
    "suggest",

    # Types
    "UnsetType",

    # Constants
    "Unset",
)
