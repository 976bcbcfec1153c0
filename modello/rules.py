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

"""Directive rules table.

Every tag the compiler recognises is listed here, in the order it is
applied.  ``@include`` is expanded first over the raw text; the remaining
rules are then tried left to right by a single scan, so text emitted for one
tag is never re-read as another tag.

Tags that take an argument (``@if(...)``, ``@foreach(...)`` ...) only match
their opening ``name(``; the argument itself is read by
:func:`read_argument`, which balances parentheses and skips quoted strings.

``@endif`` and ``@endforeach`` must stand as whole words.  ``@else`` glued
to a word (``@elseB``) is still matched, and the compiler rejects it rather
than reading it as literal text.
"""

from __future__ import annotations

import re
from dataclasses import dataclass


@dataclass(frozen=True)
class DirectiveRule:
    """A recognised tag: its name, the pattern that finds it, and whether
    a parenthesised argument follows the match."""

    name: str
    pattern: str
    takes_argument: bool = False


INCLUDE = DirectiveRule("include", r"@include\(", takes_argument=True)

RULES: tuple[DirectiveRule, ...] = (
    INCLUDE,
    DirectiveRule("echo", r"\{\{\s*(?P<echo_expr>.+?)\s*\}\}"),
    DirectiveRule("if", r"@if\(", takes_argument=True),
    DirectiveRule("elseif", r"@elseif\(", takes_argument=True),
    DirectiveRule("else", r"@else(?P<else_tail>\w*)"),
    DirectiveRule("endif", r"@endif(?!\w)"),
    DirectiveRule("foreach", r"@foreach\(", takes_argument=True),
    DirectiveRule("endforeach", r"@endforeach(?!\w)"),
    DirectiveRule("comment", r"\{--[\s\S]*?--\}"),
)

# Everything except @include, which runs as its own pass beforehand.
SCAN_RULES: tuple[DirectiveRule, ...] = tuple(r for r in RULES if r is not INCLUDE)

ARGUMENT_TAGS = frozenset(r.name for r in SCAN_RULES if r.takes_argument)


def build_scanner(rules: tuple[DirectiveRule, ...] = SCAN_RULES) -> re.Pattern[str]:
    """Combine *rules* into one alternation, one named group per rule.

    At a given position the first listed rule wins; across positions the
    leftmost match wins, which is what lets a comment swallow the
    directives written inside it.
    """
    return re.compile("|".join(f"(?P<{r.name}>{r.pattern})" for r in rules))


SCANNER = build_scanner()
INCLUDE_PATTERN = re.compile(INCLUDE.pattern)

_QUOTES = ("'", '"')


def read_argument(text: str, start: int) -> tuple[str, int] | None:
    """Read a parenthesised argument whose ``(`` ends just before *start*.

    Returns ``(argument, end)`` where *end* is the index after the closing
    ``)``, or ``None`` when the parentheses never balance.
    """
    depth = 1
    quote: str | None = None
    i = start
    while i < len(text):
        ch = text[i]
        if quote:
            if ch == "\\":
                i += 2
                continue
            if ch == quote:
                quote = None
        elif ch in _QUOTES:
            quote = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return text[start:i].strip(), i + 1
        i += 1
    return None


def line_of(text: str, index: int) -> int:
    """1-based line number of *index* in *text*."""
    return text.count("\n", 0, index) + 1
