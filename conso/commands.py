"""
Conso command layer: describe a command tree once, run it or introspect it.

What this module provides
- Ctx: the registration surface handed to a builder callback.
  • command(constraint) / data_command(constraint) / otherwise()
- Command / DataCommand: fluent handles to attach a description, argument
  constraints, a sub-tree, a nested interactive loop and a terminal handler.
- ControlFlow: the cell a loop's handlers use to quit it with a payload.

- Traversals
  • execute(tokens, builder): Execute mode. Matches tokens against the tree,
    extracts values and runs exactly one handler, or raises a fault.
  • describe(builder): Introspect mode. Runs the same builder against a no-op
    recorder and returns an Entry snapshot; nothing is matched, nothing runs.

- Drivers
  • parse(prompt, builder): one dispatch with a "help [path]" pseudo-command
    and rendered, suggestion-rich faults.
  • args(builder): parse(sys.argv[1:], builder) in shell mode.
  • user_loop(builder): read/dispatch until a handler calls flow.quit(payload).

Core ideas
- One builder, two passes: the builder only registers nodes; every real side
  effect lives in handlers. The dispatcher calls the builder again for every
  scope it enters, so the tree is rebuilt from scratch on each traversal.
- First match wins: nodes are tried in registration order, and the first one
  whose name matches is committed to (its arguments must then match too).
- No loop parameter on Ctx: loop builders receive the ControlFlow as a second
  argument and handlers close over it.

Quick start
    from conso import either, user_loop

    def shell(ctx, flow):
        ctx.command("multiply") \\
            .description("Multiply two small numbers") \\
            .constrained_arg(range(0, 100)) \\
            .constrained_arg(range(0, 100)) \\
            .run(lambda a, b: print(a * b))

        ctx.command(either("q", "quit")).run(lambda: flow.quit(0))

    status = user_loop(shell)
"""
import functools
import logging
import shlex
import sys
from collections.abc import Iterable
from enum import Enum, auto

from rich.text import Text

from . import rendering
from .constraints import Always, constrain, unconstrained
from .faults import *
from .introspection import Entry
from .utils import *

logger = logging.getLogger(__name__)


class Signal(Enum):
    """
    State of a ControlFlow cell.
    """
    CONTINUE = auto()
    QUIT = auto()


class ControlFlow:
    """
    Shared signal letting any handler end the enclosing interactive loop.

    One cell is created per loop and handed to its builder on every
    iteration; handlers at any depth of that loop's tree reach it by closure.
    The driver reads it after each dispatch and resets it when the loop goes on.
    """
    __slots__ = ("_signal", "_payload")

    def __init__(self):
        self._signal = Signal.CONTINUE
        self._payload = None

    @property
    def signal(self):
        return self._signal

    @property
    def payload(self):
        return self._payload

    @property
    def quitting(self):
        return self._signal is Signal.QUIT

    def quit(self, payload=None, /):
        """
        Ask the loop to stop after the current dispatch and return `payload`.
        """
        self._signal = Signal.QUIT
        self._payload = payload

    def reset(self):
        self._signal = Signal.CONTINUE
        self._payload = None

    def __repr__(self):
        if self.quitting:
            return "control-flow(signal=%s, payload=%r)" % (self._signal.name, self._payload)
        return "control-flow(signal=%s)" % self._signal.name


class Node:
    """
    One registered entry of a scope. Built per traversal, never shared.
    """
    __slots__ = ("constraint", "description", "arguments", "handler", "builder", "loop", "data")

    def __init__(self, constraint, /, *, data=False):
        self.constraint = constraint
        self.description = None
        self.arguments = []
        self.handler = Unset
        self.builder = Unset
        self.loop = Unset
        self.data = data

    @property
    def runnable(self):
        return self.handler is not Unset or self.loop is not Unset

    def __repr__(self):
        return "node(constraint=%r, arguments=%r)" % (self.constraint, self.arguments)


class Ctx:
    """
    Registration surface for one scope, valid during one builder call.

    Nodes are kept in call order; the dispatcher tries them in that order.
    """
    __typename__ = "ctx"

    def __init__(self):
        self._nodes = []

    @property
    def nodes(self):
        return tuple(self._nodes)

    @property
    def introspecting(self):
        return False

    def _register(self, constraint, *, data):
        self._nodes.append(node := Node(constrain(constraint), data=data))
        return node

    def command(self, constraint, /):
        """
        Register a command named by `constraint`; its value is discarded.
        """
        return Command(self._register(constraint, data=False))

    def data_command(self, constraint, /):
        """
        Register a command whose matched value becomes the handler's first argument.
        """
        return DataCommand(self._register(constraint, data=True))

    def otherwise(self):
        """
        Register the fallback of this scope; it matches without consuming.

        Register it last: nodes after it can never be reached.
        """
        return self.command(Always())


class ExecuteCtx(Ctx):
    """
    Scope bound to live input: exposes the tokens still to be matched.
    """
    __typename__ = "execute-ctx"

    def __init__(self, tokens, /):
        super().__init__()
        self._tokens = tuple(tokens)

    @property
    def tokens(self):
        return self._tokens


class IntrospectCtx(Ctx):
    """
    Scope bound to no input: a plain recorder for describe().
    """
    __typename__ = "introspect-ctx"

    @property
    def tokens(self):
        return ()

    @property
    def introspecting(self):
        return True


class DataCommand:
    """
    Fluent handle on a registered node whose handler receives values.

    Every arg()/constrained_arg() adds exactly one positional argument to the
    handler call, after the node's own value for data commands.
    """
    __slots__ = ("_node",)
    __typename__ = "data-command"

    def __init__(self, node, /):
        self._node = node

    def description(self, description, /):
        if not isinstance(description, str | Text):
            raise TypeError(f"{type(self).__typename__} 'description' must be a string")
        elif isinstance(description, str) and not (description := description.strip()):
            raise ValueError(f"{type(self).__typename__} 'description' cannot be empty")
        if self._node.description is not None:
            raise TypeError(f"{type(self).__typename__} description cannot be overridden")
        self._node.description = description
        return self

    def arg(self, type, /):
        """
        Add an argument read by a Python type (see constraints.unconstrained).
        """
        return self.constrained_arg(unconstrained(type))

    def constrained_arg(self, constraint, /):
        """
        Add an argument that must satisfy `constraint` (see constraints.constrain).
        """
        if self._node.loop is not Unset:
            raise TypeError(f"{type(self).__typename__} user loop takes no arguments")
        self._node.arguments.append(constrain(constraint))
        return DataCommand(self._node)

    def run(self, handler, /):
        """
        Attach the terminal handler; returns it so run can decorate a function.
        """
        if not callable(handler):
            raise TypeError(f"{type(self).__typename__} handler must be callable")
        if self._node.runnable:
            raise TypeError(f"{type(self).__typename__} handler cannot be overridden")
        self._node.handler = handler
        return handler


class Command(DataCommand):
    """
    Fluent handle on a named command (its name carries no value).

    Besides the DataCommand surface it can own a sub-tree or a nested loop.
    Arguments are matched right after the name, sub-commands after the arguments.
    """
    __slots__ = ()
    __typename__ = "command"

    def sub_commands(self, builder, /):
        """
        Attach a sub-tree builder, called with a fresh Ctx each time the
        dispatcher (or describe) enters this command.

        A handler may still be attached: it runs when no sub-command matched
        and no tokens remain.
        """
        if not callable(builder):
            raise TypeError(f"{type(self).__typename__} sub-commands builder must be callable")
        if self._node.builder is not Unset:
            raise TypeError(f"{type(self).__typename__} sub-commands cannot be overridden")
        if self._node.loop is not Unset:
            raise TypeError(f"{type(self).__typename__} cannot mix sub-commands and a user loop")
        self._node.builder = builder
        return self

    def user_loop(self, builder, /):
        """
        Make this command open a nested interactive loop with its own ControlFlow.

        The loop builder takes (ctx, flow) like the top-level one; quitting it
        returns to the enclosing loop and its payload is discarded. The command
        takes no arguments: there is no handler to receive them.
        """
        if not callable(builder):
            raise TypeError(f"{type(self).__typename__} user loop builder must be callable")
        if self._node.runnable:
            raise TypeError(f"{type(self).__typename__} handler cannot be overridden")
        if self._node.arguments:
            raise TypeError(f"{type(self).__typename__} user loop takes no arguments")
        if self._node.builder is not Unset:
            raise TypeError(f"{type(self).__typename__} cannot mix sub-commands and a user loop")
        self._node.loop = builder
        return self


def _bind(builder, flow):
    """
    Adapt a loop builder (ctx, flow) to the scope builder shape (ctx).
    """
    @rename("builder")
    def bound(ctx):
        return builder(ctx, flow)
    return bound


def _runtime(*, prompt="~> ", reader=Unset, help=True, shell=False, soft=False, fancy=False, colorful=True):
    if not isinstance(prompt, str):
        raise TypeError("'prompt' must be a string")
    if reader is not Unset and not callable(reader):
        raise TypeError("'reader' must be callable")
    return {
        "prompt": prompt,
        "reader": reader,
        "help": bool(help),
        "shell": bool(shell),
        "soft": bool(soft),
        "fancy": bool(fancy),
        "colorful": bool(colorful),
    }


def _unmatched(tokens, index, *, nested):
    """
    Build the NoMatch fault for a scope where nothing matched at `index`.
    """
    kind = "subcommand" if nested else "command"
    exception = UnknownSubcommandError if nested else NoMatchError
    code = FaultCode.UNKNOWN_SUBCOMMAND if nested else FaultCode.NO_MATCH
    if index < len(tokens):
        message = "unknown %s %r at %s position" % (kind, tokens[index], ordinal(index + 1))
    else:
        message = "missing %s at %s position" % (kind, ordinal(index + 1))
    return exception(
        message,
        title="unknown %s" % kind,
        code=code,
        tokens=tokens,
        index=index,
        docs=getdoc(code),
    )


def _dispatch(builder, tokens, index, runtime, entered=frozenset()):
    """
    Run one scope: populate it, commit to the first matching node.

    Returns False when no node of this scope matched at `index`; faults found
    after a commit are raised. `entered` holds the ids of the scope builders
    already entered at `index` without consuming a token.
    """
    entered = entered | {id(builder)}
    builder(ctx := ExecuteCtx(tokens[index:]))
    remaining = ctx.tokens
    for node in ctx.nodes:
        if (outcome := node.constraint.match(remaining)) is not None:
            logger.debug("matched %r at %s position", node.constraint, ordinal(index + 1))
            _commit(node, outcome, tokens, index, runtime, entered)
            return True
    logger.debug("no match among %d nodes at %s position", len(ctx.nodes), ordinal(index + 1))
    return False


def _commit(node, outcome, tokens, index, runtime, entered):
    position = index + outcome.consumed
    values = [outcome.value] if node.data else []

    for argument in node.arguments:
        if (match := argument.match(tokens[position:])) is None:
            if position < len(tokens):
                message = "invalid argument %r at %s position, expected %s" % (
                    tokens[position], ordinal(position + 1), argument.usage()
                )
            else:
                message = "missing argument at %s position, expected %s" % (ordinal(position + 1), argument.usage())
            raise ArgumentConstraintError(
                message,
                title="invalid argument",
                code=FaultCode.ARGUMENT_CONSTRAINT,
                tokens=tokens,
                index=position,
                expected=argument.usage(),
                docs=getdoc(FaultCode.ARGUMENT_CONSTRAINT),
            )
        position += match.consumed
        values.append(match.value)

    if node.builder is not Unset:
        if position > index:
            entered = frozenset()
        if id(node.builder) in entered:
            # Re-entering a scope without consuming a token can never progress.
            logger.debug("zero-width cycle at %s position", ordinal(position + 1))
        elif _dispatch(node.builder, tokens, position, runtime, entered):
            return

    if not node.runnable:
        # Named something, but there is nothing to run here: a dead end.
        logger.debug("dead end at %s position", ordinal(position + 1))
        raise _unmatched(tokens, position, nested=position > 0)

    if position < len(tokens):
        raise TrailingTokensError(
            "unexpected %r at %s position" % (tokens[position], ordinal(position + 1)),
            title="trailing input",
            code=FaultCode.TRAILING_TOKENS,
            tokens=tokens,
            index=position,
            leftover=tokens[position:],
            docs=getdoc(FaultCode.TRAILING_TOKENS),
        )

    if node.loop is not Unset:
        _loop(node.loop, runtime)
        return

    node.handler(*values)


def _tokenize(prompt):
    """
    Normalize a prompt into a tuple of tokens.

    - str: shell-like string, split with shlex.split.
    - Iterable[str]: already tokenized (e.g. sys.argv), kept exactly as given;
      empty or padded tokens are values like any other.
    """
    if isinstance(prompt, str):
        return tuple(shlex.split(prompt))
    elif isinstance(prompt, Iterable):
        tokens = tuple(prompt)
        if not all(isinstance(token, str) for token in tokens):
            raise TypeError("prompt must be a string or an iterable of strings")
        return tokens
    raise TypeError("prompt must be a string or an iterable of strings")


def execute(tokens, builder, /, **options):
    """
    Execute mode: dispatch `tokens` through the tree produced by `builder`.

    Exactly one handler runs when the whole input matches a path; otherwise a
    NoMatchError, ArgumentConstraintError or TrailingTokensError is raised with
    `tokens` and the 0-based failing `index`, and no handler runs.

    Options (only used by nested user loops): prompt, reader, help, shell,
    fancy, colorful.
    """
    if not callable(builder):
        raise TypeError("execute() builder must be callable")
    tokens = _tokenize(tokens)
    runtime = _runtime(**options)
    if not _dispatch(builder, tokens, 0, runtime):
        raise _unmatched(tokens, 0, nested=False)


def _expand(builder, options):
    builder(ctx := IntrospectCtx())
    for node in ctx.nodes:
        if node.loop is not Unset:
            expand = functools.partial(_expand, _bind(node.loop, ControlFlow()), options)
        elif node.builder is not Unset:
            expand = functools.partial(_expand, node.builder, options)
        else:
            expand = Unset
        yield Entry(
            node.constraint,
            node.description,
            node.arguments,
            runnable=node.runnable,
            looped=node.loop is not Unset,
            data=node.data,
            expand=expand,
            **options,
        )


def describe(builder, /, *, shell=False, fancy=False, colorful=True):
    """
    Introspect mode: snapshot the tree produced by `builder`.

    The builder runs against a recorder; no constraint is matched against
    input and no handler runs. Sub-trees are expanded lazily through
    Entry.children.

    shell, fancy and colorful are the flags warnings found while expanding
    the snapshot are surfaced with (printed in shell mode, warnings.warn
    otherwise).
    """
    if not callable(builder):
        raise TypeError("describe() builder must be callable")
    options = {"shell": bool(shell), "fancy": bool(fancy), "colorful": bool(colorful)}
    return Entry(expand=functools.partial(_expand, builder, options), **options)


def _snapshot(builder, runtime):
    return describe(builder, shell=runtime["shell"], fancy=runtime["fancy"], colorful=runtime["colorful"])


def _suggestions(token, scope):
    # A scope shadowed by otherwise() can offer the very token that failed.
    return tuple(name for name in suggest(token, scope.names()) if name != token)


def _hint(fault, route, runtime):
    """
    One actionable sentence for a fault, pointing at 'help <route>' when available.
    """
    helper = "help %s" % route if route else "help"
    if isinstance(fault, NoMatchError | TrailingTokensError) and fault.suggestions:
        if runtime["help"]:
            return "did you mean %r? you can also run '%s' to see what is available" % (fault.suggestions[0], helper)
        return "did you mean %r?" % fault.suggestions[0]
    if not runtime["help"]:
        return None
    if isinstance(fault, ArgumentConstraintError):
        return "run '%s' to see the expected arguments" % helper
    if isinstance(fault, TrailingTokensError):
        return "remove the extra input, or run '%s' to see valid forms" % helper
    return "run '%s' to see what is available" % helper


def _report(fault, builder, runtime):
    """
    Enrich a dispatch fault from an introspect snapshot, then trigger it.
    """
    if fault.scope is None:
        tokens = fault.tokens
        root = _snapshot(builder, runtime)
        scope, _ = root.locate(tokens[:fault.index])
        suggestions = ()
        if fault.index < len(tokens) and not isinstance(fault, ArgumentConstraintError):
            suggestions = _suggestions(tokens[fault.index], scope)
        fault = fault.__replace__(scope=scope, suggestions=suggestions)
        fault = fault.__replace__(hint=_hint(fault, " ".join(root.route(tokens[:fault.index])), runtime))
    trigger(
        fault,
        shell=runtime["shell"],
        soft=runtime["soft"],
        fancy=runtime["fancy"],
        colorful=runtime["colorful"],
    )


def _help(tokens, builder, runtime):
    root = _snapshot(builder, runtime)
    entry, consumed = root.locate(path := tokens[1:])
    if consumed < len(path):
        scope, _ = root.locate(path[:consumed])
        fault = NoMatchError(
            "unknown help topic %r at %s position" % (path[consumed], ordinal(consumed + 2)),
            title="unknown help topic",
            code=FaultCode.NO_MATCH,
            tokens=tokens,
            index=consumed + 1,
            scope=scope,
            suggestions=_suggestions(path[consumed], scope),
            docs=getdoc(FaultCode.NO_MATCH),
        )
        raise fault.__replace__(hint=_hint(fault, " ".join(root.route(path[:consumed])), runtime))
    rendering.show(entry, fancy=runtime["fancy"], colorful=runtime["colorful"])


def _run(tokens, builder, runtime):
    try:
        if runtime["help"] and tokens[:1] == ("help",):
            return _help(tokens, builder, runtime)
        if not _dispatch(builder, tokens, 0, runtime):
            raise _unmatched(tokens, 0, nested=False)
    except CommandException as fault:
        _report(fault, builder, runtime)


def _malformed(error, runtime):
    trigger(
        MalformedInputError(
            "malformed input: %s" % error,
            title="malformed input",
            code=FaultCode.MALFORMED_INPUT,
            hint="check that every quotation mark is closed",
            docs=getdoc(FaultCode.MALFORMED_INPUT),
        ),
        shell=runtime["shell"],
        soft=runtime["soft"],
        fancy=runtime["fancy"],
        colorful=runtime["colorful"],
    )


def parse(prompt, builder, /, **options):
    """
    Dispatch one prompt through `builder` with help and rendered faults.

    Parameters
    - prompt: str (shlex-split) or Iterable[str].
    - builder: callable taking a Ctx.
    - help: bool, default True. Intercept "help [path...]" and print the
      help of the located entry.
    - shell: bool, default False. Print faults instead of raising them; the
      process exits with status 1 unless soft is also set.
    - soft, fancy, colorful: rendering flags (see faults).

    Faults are enriched before surfacing: the scope where dispatch stopped,
    close matches for the failing token, and a hint.
    """
    if not callable(builder):
        raise TypeError("parse() builder must be callable")
    runtime = _runtime(**options)
    try:
        tokens = _tokenize(prompt)
    except ValueError as error:
        return _malformed(error, runtime)
    _run(tokens, builder, runtime)


def args(builder, /, **options):
    """
    Run `builder` against the process arguments (sys.argv[1:]) in shell mode.
    """
    options.setdefault("shell", True)
    parse(sys.argv[1:], builder, **options)


def _loop(builder, runtime):
    flow = ControlFlow()
    bound = _bind(builder, flow)
    runtime = runtime | {"soft": True}
    reader = coalesce(runtime["reader"], lambda prompt: rendering.console.input(prompt))
    logger.debug("entering user loop")
    while True:
        try:
            line = reader(runtime["prompt"])
        except EOFError:
            logger.debug("end of input, leaving user loop")
            return None
        try:
            tokens = tuple(shlex.split(line))
        except ValueError as error:
            _malformed(error, runtime)
            continue
        _run(tokens, bound, runtime)
        if flow.quitting:
            logger.debug("user loop quit with %r", flow.payload)
            return flow.payload
        flow.reset()


def user_loop(builder, /, **options):
    """
    Read lines and dispatch them until a handler calls flow.quit(payload).

    Parameters
    - builder: callable taking (ctx, flow); flow is this loop's ControlFlow.
    - prompt: str, default "~> ".
    - reader: callable(prompt) -> str; defaults to the rich console input.
      EOFError ends the loop and returns None.
    - help, shell, fancy, colorful: as in parse(); shell defaults to True.
      Faults never end the loop in shell mode.

    Returns
    - The payload passed to quit().
    """
    if not callable(builder):
        raise TypeError("user_loop() builder must be callable")
    options.setdefault("shell", True)
    return _loop(builder, _runtime(**options))


__all__ = (
    "Signal",
    "ControlFlow",
    "Ctx",
    "ExecuteCtx",
    "IntrospectCtx",
    "Command",
    "DataCommand",
    "execute",
    "describe",
    "parse",
    "args",
    "user_loop",
)
