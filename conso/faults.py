"""
Conso faults (errors and warnings) and rendering.

Scope
- FaultCode: canonical, stable numeric identifiers for every user-facing issue.
- CommandException / CommandWarning: base types that carry a message plus
  read-only options and know how to render themselves.
- trigger(): central entry point to surface any fault (respecting shell/soft/
  fancy/colorful).
- getdoc(): optional description lookup for a code from the host application.

UX goals
- Position-first messages: every message names the ordinal position of the
  failing token (“at second position”).
- The input is echoed with carets under the failing token, followed by a single
  hint and the usage of the scope where dispatch gave up.

Integration
- The dispatcher raises faults carrying tokens/index; the drivers (parse, args,
  user_loop) enrich them with scope, suggestions and hint, then call trigger().
- In non-shell mode exceptions are raised and warnings go through
  warnings.warn; in shell mode both are rendered via rich.
"""
import os.path
import sys
import warnings
from collections import defaultdict
from enum import IntEnum
from types import MappingProxyType

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

from .rendering import outline
from .utils import Unset

console = Console(stderr=True)


class FaultCode(IntEnum):
    """
    canonical fault codes (stable identifiers).

    grouping
    - routing (1110x): NO_MATCH, UNKNOWN_SUBCOMMAND
    - input (1111x): MALFORMED_INPUT
    - arguments (1112x): ARGUMENT_CONSTRAINT
    - leftovers (1114x): TRAILING_TOKENS
    - warnings (12xxx): SHADOWED_COMMAND

    normalize() allows host remapping through a __codes__ mapping in __main__.
    """
    # --- routing errors (11xxx) ---
    NO_MATCH                    = 11101
    UNKNOWN_SUBCOMMAND          = 11102

    # --- input errors (11xxx) ---
    MALFORMED_INPUT             = 11111

    # --- argument errors (11xxx) ---
    ARGUMENT_CONSTRAINT         = 11121

    # --- leftover errors (11xxx) ---
    TRAILING_TOKENS             = 11141

    # --- warnings (12xxx) ---
    SHADOWED_COMMAND            = 12111

    def normalize(self):
        """
        return a host-normalized string for this code.
        """
        return str(getattr(__import__("__main__"), "__codes__", {}).get(self, self.value))


def _program():
    main = __import__("__main__")
    return getattr(main, "__prog__", os.path.basename(sys.argv[0]) or "conso")


def _styling(options, palette):
    """
    Build the (styler, text) pair shared by every fault renderer.

    The palette is merged with the host's __styles__ overrides; when colorful
    is off every style resolves to the empty string.
    """
    styles = defaultdict(str, palette | getattr(__import__("__main__"), "__styles__", {}))
    colorful = options.get("colorful", True)

    def styler(style):
        return styles[style] if colorful else ""

    def text(fragment, style=""):
        if not fragment:
            return Text("")
        if not colorful:
            return Text(str(fragment))
        if isinstance(fragment, Text):
            return fragment
        return Text(str(fragment), style)

    return styler, text


class CommandException(Exception):
    """
    Base class of dispatch failures.

    Options (all optional, read-only through .options)
    - title, code, hint, docs: presentation.
    - tokens, index: the full input and the 0-based position of the failure.
    - scope: introspection entry whose children were candidates at that point.
    - suggestions: close matches for the failing token.
    - shell, soft, fancy, colorful: runtime flags merged by trigger().
    """

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    @property
    def code(self):
        return self.options.get("code")

    @property
    def tokens(self):
        return tuple(self.options.get("tokens", ()))

    @property
    def index(self):
        return self.options.get("index", 0)

    @property
    def remaining(self):
        return self.tokens[self.index:]

    @property
    def scope(self):
        return self.options.get("scope")

    @property
    def suggestions(self):
        return tuple(self.options.get("suggestions", ()))

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        styler, text = _styling(self.options, {
            # header parts
            "prog-name": "bold #E6E6F0",
            "code": "bold #00E5FF",
            "error-title": "bold #FF4DA6",

            # body
            "input": "#E6E6F0",
            "caret": "bold #FF4DA6",
            "error-message": "#C8C8D0",
            "hint-arrow": "#9CE19C dim",
            "hint": "italic #9CE19C",
            "usage-label": "bold #00E6FF",
        })

        code = self.code.normalize() if isinstance(self.code, FaultCode) else self.code
        header = Text.assemble(
            "[ ",
            text(_program(), styler("prog-name")),
            " | ",
            text(code, styler("code")),
            " | ",
            text(str(self.options.get("title", "error")).title(), styler("error-title")),
            " ]"
        )

        renders = []
        if tokens := self.tokens:
            # Echo the input and point at the failing token (or just past the end).
            offset = sum(len(token) + 1 for token in tokens[:self.index])
            width = len(tokens[self.index]) if self.index < len(tokens) else 1
            renders.append(text(" ".join(tokens), styler("input")))
            renders.append(Text.assemble(
                " " * offset,
                text("^" * width, styler("caret")),
                " ",
                text(self.message, styler("error-message"))
            ))
        else:
            renders.append(text(self.message, styler("error-message")))

        if hint := self.options.get("hint"):
            renders.append(Text.assemble(text(" → ", styler("hint-arrow")), text(hint, styler("hint"))))

        if (scope := self.scope) is not None and scope.children:
            renders.append(Text(""))
            renders.append(text("usage:", styler("usage-label")))
            renders.append(outline(scope, colorful=self.options.get("colorful", True)))

        if self.options.get("fancy"):
            return Panel(Group(*renders), title=header, title_align="left")

        return Group(header, *renders)

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            raise self from None
        console.print(self)
        if self.options.get("soft"):
            return
        sys.exit(1)

    def __replace__(self, *unused, **overrides):
        assert not unused, "unused arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class NoMatchError(CommandException): ...
class UnknownSubcommandError(NoMatchError): ...
class ArgumentConstraintError(CommandException): ...
class TrailingTokensError(CommandException): ...
class MalformedInputError(CommandException): ...


class CommandWarning(Warning):
    """
    Base class of non-fatal issues found while describing a command tree.
    """

    def __init__(self, message=Unset, /, **options):
        if not isinstance(message, str | Unset):
            raise TypeError(f"{type(self).__name__} message must be a string")
        super().__init__(message)
        self.message = message
        self.options = MappingProxyType(options)

    def __str__(self):
        return str(self.message)

    def __rich__(self):
        styler, text = _styling(self.options, {
            "prog-name": "bold #E6E6F0",
            "code": "bold #FFB400",
            "warning-title": "bold #FFC2E0",
            "warning-message": "#D6D6DE",
            "hint-arrow": "#B8EFAF dim",
            "hint": "italic #B8EFAF",
        })

        code = self.options.get("code")
        header = Text.assemble(
            "[ ",
            text(_program(), styler("prog-name")),
            " | ",
            text(code.normalize() if isinstance(code, FaultCode) else code, styler("code")),
            " | ",
            text(str(self.options.get("title", "warning")).title(), styler("warning-title")),
            " ]"
        )
        message = text(self.message, styler("warning-message"))
        hint = Text.assemble(text(" → ", styler("hint-arrow")), text(self.options.get("hint"), styler("hint")))

        if self.options.get("fancy"):
            return Panel(Group(message, hint), title=header, title_align="left")

        return Group(header, message, hint)

    def __trigger__(self) -> None:
        if not self.options.get("shell"):
            return warnings.warn(self, stacklevel=4)
        console.print(self)

    def __replace__(self, *unused, **overrides):
        assert not unused, "positional arguments are not allowed"
        return type(self)(self.message, **{**self.options, **overrides})


class ShadowedCommandWarning(CommandWarning): ...


def trigger(fault, /, **options):
    """
    surface a fault with the given runtime options.

    contract
    - fault must provide __trigger__ and __replace__ methods (see base classes).
    - options are merged into the fault via __replace__(**options) before triggering.
    - in shell mode, rendering happens via the rich console; otherwise exceptions
      are raised and warnings are emitted through the warnings module.
    """
    if (
        not hasattr(fault, "__trigger__") or
        not callable(fault.__trigger__) or
        not hasattr(fault, "__replace__") or
        not callable(fault.__replace__)
    ):
        raise TypeError("trigger() argument must have a __trigger__ and __replace__ methods")
    fault.__replace__(**options).__trigger__()


def getdoc(code, /):
    """
    optional documentation fetch for a fault code from __main__.__docs__.
    """
    if not isinstance(code, FaultCode):
        raise TypeError("getdoc() argument must be a fault-code")
    try:
        return getattr(__import__("__main__"), "__docs__", {})[code]
    except KeyError:
        return None


__all__ = (
    "CommandException",
    "NoMatchError",
    "UnknownSubcommandError",
    "ArgumentConstraintError",
    "TrailingTokensError",
    "MalformedInputError",
    "CommandWarning",
    "ShadowedCommandWarning",
    "FaultCode",
    "trigger",
    "getdoc",
)
