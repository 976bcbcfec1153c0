# modello — lightweight template compiler with an on-disk compile cache
# Copyright (C) 2024-2026 Dr Horst Herb
#
# This program is free software: you can redistribute it and/or modify
# it under the terms of the GNU Affero General Public License as published by
# the Free Software Foundation, either version 3 of the License, or
# (at your option) any later version.
#
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU Affero General Public License for more details.
#
# You should have received a copy of the GNU Affero General Public License
# along with this program.  If not, see <https://www.gnu.org/licenses/>.

"""Tag compiler: template text -> instruction tree -> artifact text.

Compilation runs in two passes:

1. ``@include(name)`` tags are replaced by the raw text of the named
   template, recursively, so included text may use any directive
   (including further includes).  There is no cycle detection.
2. The expanded text is scanned once, left to right, against the
   directive rules.  Text between tags becomes :class:`Literal` nodes;
   block tags are matched against an explicit open-block stack so that a
   mismatched closer, a stray ``@else`` or an unclosed block is reported
   here as a :class:`TemplateSyntaxError` instead of surfacing later as a
   confusing render failure.

Expressions inside tags are not parsed; they are stored verbatim and
evaluated at render time by :mod:`modello.sandbox`.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from dataclasses import dataclass

from modello.nodes import Branch, Echo, ForEach, If, Literal, Node, Template
from modello.rules import ARGUMENT_TAGS, INCLUDE_PATTERN, SCANNER, line_of, read_argument

logger = logging.getLogger(__name__)

_FOREACH = re.compile(
    r"^(?P<iterable>.+?)\s+as\s+(?:(?P<key>\$?[A-Za-z_]\w*)\s*=>\s*)?(?P<value>\$?[A-Za-z_]\w*)$",
    re.DOTALL,
)


class TemplateSyntaxError(ValueError):
    """A directive is malformed or blocks are nested incorrectly."""

    def __init__(self, message: str, line: int | None = None) -> None:
        self.line = line
        if line is not None:
            message = f"{message} (line {line})"
        super().__init__(message)


@dataclass
class _OpenBlock:
    kind: str  # "if" or "foreach"
    node: If | ForEach
    body: list[Node]
    line: int
    seen_else: bool = False


class TemplateCompiler:
    """Compile template text into the cached artifact format.

    Args:
        include_resolver: Callable returning the raw text of a template
            given its dotted name.  Needed only for templates that use
            ``@include``.
    """

    def __init__(self, include_resolver: Callable[[str], str] | None = None) -> None:
        self.include_resolver = include_resolver

    def compile(self, text: str) -> str:
        """Compile *text* to artifact text.  Same input, same bytes."""
        return self.parse(text).dumps()

    def parse(self, text: str) -> Template:
        """Expand includes and build the instruction tree for *text*."""
        expanded = self.expand_includes(text)
        template = Template(nodes=_Parser(expanded).parse())
        logger.debug("Compiled template (%d chars -> %d nodes)", len(text), len(template.nodes))
        return template

    def expand_includes(self, text: str) -> str:
        """Inline every ``@include(name)`` with the raw text it names."""
        parts: list[str] = []
        pos = 0
        for match in INCLUDE_PATTERN.finditer(text):
            if match.start() < pos:
                continue
            arg = read_argument(text, match.end())
            if arg is None:
                raise TemplateSyntaxError(
                    "Unterminated @include(", line_of(text, match.start()),
                )
            name, end = arg
            name = name.strip("'\"").strip()
            if self.include_resolver is None:
                raise TemplateSyntaxError(
                    f"Cannot include {name!r}: no template loader configured",
                    line_of(text, match.start()),
                )
            parts.append(text[pos:match.start()])
            parts.append(self.expand_includes(self.include_resolver(name)))
            pos = end
        if not parts:
            return text
        parts.append(text[pos:])
        return "".join(parts)


class _Parser:
    """Single scan over expanded template text."""

    def __init__(self, text: str) -> None:
        self.text = text
        self.root: list[Node] = []
        self.stack: list[_OpenBlock] = []

    @property
    def body(self) -> list[Node]:
        return self.stack[-1].body if self.stack else self.root

    def parse(self) -> list[Node]:
        text = self.text
        pos = 0
        while True:
            match = SCANNER.search(text, pos)
            if match is None:
                self._literal(text[pos:])
                break
            self._literal(text[pos:match.start()])
            kind = match.lastgroup
            line = line_of(text, match.start())
            end = match.end()
            argument = None
            if kind in ARGUMENT_TAGS:
                arg = read_argument(text, end)
                if arg is None:
                    raise TemplateSyntaxError(f"Unterminated @{kind}(", line)
                argument, end = arg
                if not argument:
                    raise TemplateSyntaxError(f"@{kind} requires an expression", line)
            self._handle(kind, match, argument, line)
            pos = end

        if self.stack:
            block = self.stack[-1]
            raise TemplateSyntaxError(
                f"@{block.kind} opened on line {block.line} is never closed", block.line,
            )
        return self.root

    def _literal(self, text: str) -> None:
        if not text:
            return
        body = self.body
        if body and isinstance(body[-1], Literal):
            body[-1].text += text
        else:
            body.append(Literal(text))

    def _handle(self, kind: str, match: re.Match[str], argument: str | None, line: int) -> None:
        if kind == "comment":
            return
        if kind == "echo":
            self.body.append(Echo(match.group("echo_expr")))
        elif kind == "if":
            branch = Branch(cond=argument)
            node = If(branches=[branch])
            self.body.append(node)
            self.stack.append(_OpenBlock("if", node, branch.body, line))
        elif kind == "elseif":
            block = self._open_if("@elseif", line)
            branch = Branch(cond=argument)
            block.node.branches.append(branch)
            block.body = branch.body
        elif kind == "else":
            tail = match.group("else_tail")
            if tail:
                raise TemplateSyntaxError(
                    f"Unknown directive @else{tail}; separate @else from the text after it",
                    line,
                )
            block = self._open_if("@else", line)
            block.node.else_body = []
            block.body = block.node.else_body
            block.seen_else = True
        elif kind == "foreach":
            node = _foreach_node(argument, line)
            self.body.append(node)
            self.stack.append(_OpenBlock("foreach", node, node.body, line))
        elif kind in ("endif", "endforeach"):
            self._close(kind[3:], line)

    def _open_if(self, tag: str, line: int) -> _OpenBlock:
        if not self.stack or self.stack[-1].kind != "if":
            raise TemplateSyntaxError(f"{tag} outside of an @if block", line)
        block = self.stack[-1]
        if block.seen_else:
            raise TemplateSyntaxError(f"{tag} after @else", line)
        return block

    def _close(self, kind: str, line: int) -> None:
        if not self.stack:
            raise TemplateSyntaxError(f"@end{kind} without an open @{kind}", line)
        block = self.stack[-1]
        if block.kind != kind:
            raise TemplateSyntaxError(
                f"@end{kind} cannot close @{block.kind} opened on line {block.line}", line,
            )
        self.stack.pop()


def _foreach_node(argument: str, line: int) -> ForEach:
    match = _FOREACH.match(argument)
    if match is None:
        raise TemplateSyntaxError(
            f"@foreach expects 'items as item' or 'items as key => item', got {argument!r}",
            line,
        )
    key = match.group("key")
    return ForEach(
        iterable=match.group("iterable").strip(),
        key=key.lstrip("$") if key else None,
        value=match.group("value").lstrip("$"),
    )
