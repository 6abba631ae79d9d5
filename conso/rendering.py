"""
Help rendering for introspected command trees.

What this module provides
- signature(entry): one-line usage of an entry (name followed by its arguments).
- outline(entry): the nested listing of an entry's children as rich Text,
  one level of " | " guide per depth, descriptions tucked under each name.
- show(entry): print the help of an entry (its own signature/description, then
  the outline of its children), optionally framed in a panel.

Palette keys
- command-name, metavar, guide, description, loop-marker, otherwise
- help-label, panel-title

Customization
- Define a mapping named __styles__ in __main__ to override any palette entry.
- When colorful is False, styling is suppressed entirely.
"""
import os.path
import sys
from collections import defaultdict

from rich.console import Console, Group
from rich.panel import Panel
from rich.text import Text

console = Console()


def _styles():
    return defaultdict(str, {
        "command-name": "bold #00E6FF",
        "metavar": "bold #FFD600",
        "guide": "#4B5563",
        "description": "#9CA3AF",
        "loop-marker": "italic #22C55E",
        "otherwise": "italic #FF4D94",
        "help-label": "bold #FFFFFF",
        "panel-title": "bold #FF4D94",
    } | getattr(__import__("__main__"), "__styles__", {}))


def signature(entry, /):
    """
    Return the plain usage line of an entry, e.g. "multiply <number 0..100> <number 0..100>".

    Zero-width names (otherwise) read as "(otherwise)".
    """
    if entry.constraint is None:
        name = ""
    else:
        name = entry.constraint.usage() or "(otherwise)"
    arguments = " ".join(filter(None, (argument.usage() for argument in entry.arguments)))
    return " ".join(filter(None, (name, arguments)))


def _headline(entry, styler):
    name = entry.constraint.usage() or "(otherwise)"
    parts = [Text(name, styler("command-name" if entry.constraint.usage() else "otherwise"))]
    for argument in entry.arguments:
        if usage := argument.usage():
            parts.append(Text(usage, styler("metavar")))
    return Text(" ").join(parts)


def outline(entry, /, *, colorful=True, depth=None):
    """
    Render the children of `entry` (recursively) as a single Text block.

    Parameters
    - colorful: apply the palette.
    - depth: maximum nesting to expand (None expands the whole tree).

    Children are expanded through entry.children, so sub-tree builders run in
    introspect mode only as far as the outline reaches.
    """
    styles = _styles()

    def styler(style):
        return styles[style] if colorful else ""

    lines = []

    def walk(entry, level):
        guide = " | " * level
        for child in entry.children:
            lines.append(Text.assemble(Text(guide, styler("guide")), _headline(child, styler)))
            if child.description:
                for line in str(child.description).splitlines():
                    lines.append(Text.assemble(Text(guide + " |  ", styler("guide")), Text(line, styler("description"))))
            if child.looped:
                lines.append(Text.assemble(Text(guide + " |  ", styler("guide")), Text("(interactive loop)", styler("loop-marker"))))
            if depth is None or level + 1 < depth:
                walk(child, level + 1)

    walk(entry, 0)
    return Text("\n").join(lines)


def show(entry, /, *, fancy=False, colorful=True):
    """
    Print the help of `entry` to the module console.

    The root entry (constraint None) prints only the outline of its commands;
    any other entry first prints its own signature and description.
    """
    styles = _styles()

    def styler(style):
        return styles[style] if colorful else ""

    renders = []
    if entry.constraint is not None:
        renders.append(_headline(entry, styler))
        if entry.description:
            renders.append(Text(str(entry.description), styler("description")))
        if entry.looped:
            renders.append(Text("(interactive loop)", styler("loop-marker")))
        if entry.children:
            renders.append(Text(""))

    if entry.children:
        renders.append(Text("commands:", styler("help-label")))
        renders.append(outline(entry, colorful=colorful))

    renderable = Group(*renders)
    if fancy:
        program = getattr(__import__("__main__"), "__prog__", os.path.basename(sys.argv[0]) or "conso")
        renderable = Panel(
            renderable,
            title=Text.assemble("[ ", f"{program} HELP".upper(), " ]", style=styler("panel-title")),
            title_align="left",
        )

    console.print(renderable)


__all__ = (
    "signature",
    "outline",
    "show",
)
