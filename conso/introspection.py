"""
Introspection snapshots of a command tree.

An Entry is the side-effect-free description of one registered node, built by
commands.describe() from an introspect-mode pass over the builder callbacks:
its constraint, description, argument constraints, whether it can run, whether
it opens an interactive loop, and its children.

Children are expanded lazily, the first time .children is read, by running the
sub-tree builder once more in introspect mode. Help for one path therefore only
describes the scopes along that path, and recursive trees are not expanded
forever.

Navigation
- names(): the fixed strings accepted by the children (suggestion candidates).
- locate(tokens): walk the snapshot along a token path, first match wins,
  returning the deepest entry reached and how many tokens were placed.
- route(tokens): the name tokens along that walk, arguments left out (the
  path to hand to "help").
"""
from types import MappingProxyType

from .constraints import Always
from .faults import FaultCode, ShadowedCommandWarning, trigger
from .rendering import signature
from .utils import *


class Entry:
    """
    One node of an introspection snapshot (the root entry has no constraint).

    Extra keyword options (shell, fancy, colorful) are the runtime flags the
    snapshot surfaces its warnings with; describe() hands them down to every
    child.
    """
    __slots__ = ("_constraint", "_description", "_arguments", "_runnable", "_looped", "_data", "_expand", "_children", "_options")

    constraint = mirror("constraint")
    description = mirror("description")
    arguments = mirror("arguments")
    runnable = mirror("runnable")
    looped = mirror("looped")
    data = mirror("data")

    def __init__(
            self,
            constraint=None,
            /,
            description=None,
            arguments=(),
            *,
            runnable=False,
            looped=False,
            data=False,
            expand=Unset,
            **options
    ):
        self._constraint = constraint
        self._description = description
        self._arguments = tuple(arguments)
        self._runnable = bool(runnable)
        self._looped = bool(looped)
        self._data = bool(data)
        self._expand = expand
        self._children = Unset
        self._options = MappingProxyType(options)

    @property
    def children(self):
        """
        Child entries in registration order, expanded on first access.
        """
        if self._children is Unset:
            self._children = tuple(self._expand()) if self._expand is not Unset else ()
            self._inspect()
        return self._children

    def _inspect(self):
        # An otherwise() commits on every input, so anything after it is dead.
        for position, child in enumerate(self._children[:-1]):
            if isinstance(child.constraint, Always):
                shadowed = ", ".join(repr(signature(entry)) for entry in self._children[position + 1:])
                trigger(ShadowedCommandWarning(
                    "%s registered after an otherwise command can never be reached" % shadowed,
                    title="shadowed command",
                    code=FaultCode.SHADOWED_COMMAND,
                    hint="register otherwise() last in its scope",
                    scope=self,
                ), **self._options)
                break

    def names(self):
        """
        Fixed strings accepted by the children's names, in registration order.
        """
        return tuple(name for child in self.children for name in child.constraint.literals())

    def _walk(self, tokens):
        """
        Yield (child, start, named, stop, complete) for each child placed along `tokens`.

        tokens[start:named] is the child's name; stop is the position after its
        arguments, or the position of the failing one when complete is False
        (the walk ends there).
        """
        entry, position = self, 0
        while position < len(tokens):
            for child in entry.children:
                if (outcome := child.constraint.match(tokens[position:])) is not None:
                    break
            else:
                return
            named = step = position + outcome.consumed
            for argument in child.arguments:
                if (outcome := argument.match(tokens[step:])) is None:
                    yield child, position, named, step, False
                    return
                step += outcome.consumed
            yield child, position, named, step, True
            if step == position:
                return
            entry, position = child, step

    def locate(self, tokens, /):
        """
        Follow `tokens` down the snapshot.

        Returns (entry, consumed): the deepest entry whose name matched, and the
        number of tokens placed. A child whose name matched but whose arguments
        did not is returned with consumed pointing at the failing argument.
        Zero-width steps stop the walk.
        """
        entry, consumed = self, 0
        for entry, _, _, consumed, _ in self._walk(tuple(tokens)):
            pass
        return entry, consumed

    def route(self, tokens, /):
        """
        The name tokens of the entries placed along `tokens`, arguments left out.

        route(("math", "add", "1")) -> ("math", "add")
        """
        tokens = tuple(tokens)
        return tuple(token for _, start, named, _, _ in self._walk(tokens) for token in tokens[start:named])

    def __rich_repr__(self):
        yield "constraint", self._constraint
        yield "description", self._description
        yield "arguments", self._arguments
        yield "runnable", self._runnable
        yield "looped", self._looped

    def __repr__(self):
        return "entry(%s)" % ", ".join("%s=%r" % pair for pair in self.__rich_repr__())


__all__ = (
    "Entry",
)
