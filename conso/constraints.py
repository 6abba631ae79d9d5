r"""
Conso constraints: what a command name or argument accepts.

Overview
- Constraint: the single capability behind both command names and argument
  values. A constraint attempts to consume a prefix of the remaining tokens:
  • match(tokens) -> Match(consumed, value) on success, None otherwise.
  • usage() -> short help fragment ("greet", "<number 0..100>", "[q|quit]").
  • literals() -> fixed strings it accepts (feeds "did you mean" hints).

- Primitives
  • Exact(s): one token equal to s; zero-width data (value None).
  • Range(lo, hi): one numeric token with lo <= value < hi (half-open).
  • Always(): consumes nothing, always matches (the constraint behind otherwise).
  • Unconstrained(type): any one token the type can convert.

- Combinators
  • Tuple(c1, ..., cn): positional sequence, values gathered into a tuple.
  • Either(c1, c2): alternation; the first alternative wins.
  • Optional(c), Many(c), Repeat(c, n): zero-or-one, zero-or-more, exactly-n.

- Coercion
  • constrain(x): str -> Exact, range -> Range, tuple -> Tuple, types and
    typing generics -> unconstrained(x), objects with __constraint__() -> result.
  • unconstrained(T): str/int/float/any class, T | None, list[T], tuple[A, B].

Contract
- Matching is pure: no external state is touched, the token sequence is never
  mutated, and a failed match consumes nothing.
- Tokens are handed over as a tuple (or list) of strings; combinators slice it.

Examples
    >>> Tuple(Range(0, 100), Range(0, 100)).match(("42", "7"))
    Match(consumed=2, value=(42, 7))
    >>> either("q", "quit").match(("quit",))
    Match(consumed=1, value=None)
    >>> Range(0, 10).match(("10",)) is None
    True
"""
import builtins
import functools
import operator
import re
import types
import typing
from typing import NamedTuple

from .utils import *


class Match(NamedTuple):
    """
    Successful match: how many tokens were consumed and the extracted value.
    """
    consumed: int
    value: object


class ConstraintType(type):
    """
    Metaclass giving constraints stable, introspectable representations.

    Responsibilities
    - Derive __typename__ from the class name (camel-case split with hyphens),
      used in validation messages ("range 'stop' must be a number").
    - Expose every name in __introspectable__ as a read-only property mirroring
      the private "_{name}" field.
    - Provide __repr__/__rich_repr__ built from the introspectable fields.
    """
    __introspectable__ = ()
    __displayable__ = Unset

    def __new__(cls, name, bases, namespace, **options):
        self = super().__new__(
            cls,
            name,
            bases,
            namespace | {
                "__typename__": re.sub(r"(?<!^)(?=[A-Z])", r"-", name).lower(),
            } | {
                name: mirror(name) for name in namespace.get("__introspectable__", ())
            },
        )

        @rename("__repr__")
        def __repr__(self):
            """
            Example
            - range(start=0, stop=100, type=<class 'int'>)
            """
            return f"{type(self).__typename__}({', '.join(map(functools.partial(operator.mod, '%s=%r'), self.__rich_repr__()))})"
        self.__repr__ = __repr__

        @rename("__rich_repr__")
        def __rich_repr__(self):
            for name in coalesce(type(self).__displayable__, type(self).__introspectable__):
                yield name, getattr(self, name)
        self.__rich_repr__ = __rich_repr__

        return self


class Constraint(metaclass=ConstraintType):
    """
    Base class of every constraint.

    Subclasses implement match() and usage(); literals() defaults to none.
    Anything exposing __constraint__() is accepted wherever a constraint is
    expected (see constrain()).
    """

    def match(self, tokens, /):
        raise NotImplementedError

    def usage(self):
        raise NotImplementedError

    def literals(self):
        return ()

    def __constraint__(self):
        return self


class Exact(Constraint):
    """
    Match one token equal to a fixed string.

    The value is None: exact tokens name things, they do not carry data.
    """
    __introspectable__ = ("literal",)

    def __init__(self, literal, /):
        if not isinstance(literal, str):
            raise TypeError(f"{type(self).__typename__} 'literal' must be a string")
        elif not literal:
            raise ValueError(f"{type(self).__typename__} 'literal' cannot be empty")
        self._literal = literal

    def match(self, tokens, /):
        if tokens and tokens[0] == self._literal:
            return Match(1, None)
        return None

    def usage(self):
        return self._literal

    def literals(self):
        return (self._literal,)


class Range(Constraint):
    """
    Match one numeric token inside the half-open interval [start, stop).

    Parameters
    - start, stop: int | float bounds (stop may equal start: nothing matches).
    - type: converter applied to the token; defaults to int when both bounds
      are integers, float otherwise.

    Tokens the converter rejects are simply not matched.
    """
    __introspectable__ = ("start", "stop", "type")

    def __init__(self, start, stop, /, type=Unset):
        for label, bound in (("start", start), ("stop", stop)):
            if not isinstance(bound, int | float) or isinstance(bound, bool):
                raise TypeError(f"{builtins.type(self).__typename__} {label!r} must be a number")
        if not start <= stop:
            raise ValueError(f"{builtins.type(self).__typename__} 'stop' cannot precede 'start'")
        if type is not Unset and not callable(type):
            raise TypeError(f"{builtins.type(self).__typename__} 'type' must be callable")
        self._start = start
        self._stop = stop
        self._type = coalesce(type, int if isinstance(start, int) and isinstance(stop, int) else float)

    def match(self, tokens, /):
        if not tokens:
            return None
        try:
            value = self._type(tokens[0])
        except (TypeError, ValueError, ArithmeticError):
            return None
        if self._start <= value < self._stop:
            return Match(1, value)
        return None

    def usage(self):
        return "<number %s..%s>" % (self._start, self._stop)


class Always(Constraint):
    """
    Zero-width constraint that always matches; used by Ctx.otherwise().
    """
    __introspectable__ = ()

    def match(self, tokens, /):
        return Match(0, None)

    def usage(self):
        return ""


class Unconstrained(Constraint):
    """
    Match any single token the converter accepts.

    The converter is called with the raw token; TypeError, ValueError and
    ArithmeticError mean “no match”. metavar overrides the help label.
    """
    __introspectable__ = ("type", "metavar")

    _labels = {
        str: "<string>",
        int: "<integer>",
        float: "<number>",
    }

    def __init__(self, type=str, /, metavar=Unset):
        if not callable(type):
            raise TypeError(f"{builtins.type(self).__typename__} 'type' must be callable")
        if not isinstance(metavar, str | Unset):
            raise TypeError(f"{builtins.type(self).__typename__} 'metavar' must be a string")
        elif isinstance(metavar, str) and not (metavar := metavar.strip()):
            raise ValueError(f"{builtins.type(self).__typename__} 'metavar' cannot be empty")
        self._type = type
        self._metavar = coalesce(
            metavar,
            self._labels.get(type, "<%s>" % getattr(type, "__name__", "value").lower())
        )

    def match(self, tokens, /):
        if not tokens:
            return None
        try:
            return Match(1, self._type(tokens[0]))
        except (TypeError, ValueError, ArithmeticError):
            return None

    def usage(self):
        return self._metavar


class Tuple(Constraint):
    """
    Positional sequence: each operand matches right after the previous one.

    Short-circuits on the first failing operand; on success the consumed count
    is the sum of the operands' and the value is the tuple of their values.
    """
    __introspectable__ = ("operands",)

    def __init__(self, *operands):
        self._operands = tuple(map(constrain, operands))

    def match(self, tokens, /):
        consumed = 0
        values = []
        for operand in self._operands:
            if (outcome := operand.match(tokens[consumed:])) is None:
                return None
            consumed += outcome.consumed
            values.append(outcome.value)
        return Match(consumed, tuple(values))

    def usage(self):
        return " ".join(filter(None, (operand.usage() for operand in self._operands)))


class Either(Constraint):
    """
    Alternation: try first, then second, both from the same starting point.

    Typical use is aliasing, e.g. Either("q", "quit") naming one command.
    """
    __introspectable__ = ("first", "second")

    def __init__(self, first, second, /):
        self._first = constrain(first)
        self._second = constrain(second)

    def match(self, tokens, /):
        if (outcome := self._first.match(tokens)) is not None:
            return outcome
        return self._second.match(tokens)

    def usage(self):
        return "[%s|%s]" % (self._first.usage(), self._second.usage())

    def literals(self):
        return self._first.literals() + self._second.literals()


class Optional(Constraint):
    """
    Zero-or-one: the operand's match, or Match(0, None) when it fails.
    """
    __introspectable__ = ("operand",)

    def __init__(self, operand, /):
        self._operand = constrain(operand)

    def match(self, tokens, /):
        if (outcome := self._operand.match(tokens)) is not None:
            return outcome
        return Match(0, None)

    def usage(self):
        return "(%s)?" % self._operand.usage()


class Many(Constraint):
    """
    Zero-or-more, greedy; the value is a list.

    Stops at the first failing or zero-width repetition, so it always matches
    and never loops forever.
    """
    __introspectable__ = ("operand",)

    def __init__(self, operand, /):
        self._operand = constrain(operand)

    def match(self, tokens, /):
        consumed = 0
        values = []
        while (outcome := self._operand.match(tokens[consumed:])) is not None and outcome.consumed:
            consumed += outcome.consumed
            values.append(outcome.value)
        return Match(consumed, values)

    def usage(self):
        return "(%s)*" % self._operand.usage()


class Repeat(Constraint):
    """
    Exactly `count` consecutive matches of the operand; the value is a tuple.
    """
    __introspectable__ = ("operand", "count")

    def __init__(self, operand, count, /):
        if not isinstance(count, int) or isinstance(count, bool):
            raise TypeError(f"{type(self).__typename__} 'count' must be an integer")
        elif count < 1:
            raise ValueError(f"{type(self).__typename__} 'count' must be at least one")
        self._operand = constrain(operand)
        self._count = count

    def match(self, tokens, /):
        return Tuple(*(self._operand,) * self._count).match(tokens)

    def usage(self):
        return " ".join((self._operand.usage(),) * self._count)


def either(first, second, /, *rest):
    """
    Build an Either, folding extra alternatives to the right.

    either("e", "exit", "quit") == Either("e", Either("exit", "quit"))
    """
    if rest:
        return Either(first, either(second, *rest))
    return Either(first, second)


def unconstrained(type, /):
    """
    Translate a Python type (or typing generic) into an argument constraint.

    Rules
    - str, int, float, or any other converter class -> Unconstrained(type)
    - T | None, typing.Optional[T]                    -> Optional(...)
    - A | B                                           -> Either(...)
    - list[T]                                         -> Many(...)
    - tuple[A, B, ...members]                         -> Tuple(...)

    Unparametrized containers, bool and variadic tuples are rejected: they have
    no single-token reading that would not surprise the user.
    """
    origin = typing.get_origin(type)
    arguments = typing.get_args(type)

    if origin is None:
        if type in (bool, list, tuple, dict, set, frozenset) or not isinstance(type, builtins.type):
            raise TypeError(f"unconstrained() argument {type!r} has no token reading")
        return Unconstrained(type)

    if origin is list:
        operand, = arguments
        return Many(unconstrained(operand))

    if origin is tuple:
        if len(arguments) == 2 and arguments[1] is Ellipsis:
            raise TypeError("unconstrained() variadic tuples are not supported, use list[...] instead")
        return Tuple(*map(unconstrained, arguments))

    if origin in (typing.Union, types.UnionType):
        members = [member for member in arguments if member is not types.NoneType]
        constraint = functools.reduce(Either, map(unconstrained, members))
        if len(members) < len(arguments):
            return Optional(constraint)
        return constraint

    raise TypeError(f"unconstrained() argument {type!r} has no token reading")


def constrain(object, /):
    """
    Resolve any constraint-like object into a Constraint.

    - Constraint or object with __constraint__() -> that constraint
    - str                                         -> Exact
    - range (step 1)                              -> Range
    - tuple                                       -> Tuple of the coerced members
    - type / typing generic                       -> unconstrained(object)
    """
    if hasattr(object, "__constraint__") and callable(object.__constraint__) and not isinstance(object, type):
        if not isinstance(constraint := object.__constraint__(), Constraint):
            raise TypeError("__constraint__() non-constraint returned")
        return constraint
    if isinstance(object, str):
        return Exact(object)
    if isinstance(object, range):
        if object.step != 1:
            raise ValueError("constrain() range step must be 1")
        return Range(object.start, object.stop)
    if isinstance(object, tuple):
        return Tuple(*object)
    if isinstance(object, type) or typing.get_origin(object) is not None:
        return unconstrained(object)
    raise TypeError(f"constrain() argument {object!r} must be constraint-resoluble")


__all__ = (
    "Match",
    "Constraint",
    "Exact",
    "Range",
    "Always",
    "Unconstrained",
    "Tuple",
    "Either",
    "Optional",
    "Many",
    "Repeat",
    "either",
    "unconstrained",
    "constrain",
)
