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

"""Execution sandbox for compiled templates.

A render never executes generated source.  The artifact is loaded back into
its instruction tree and walked by :class:`ExecutionScope`; the only code
that runs is the tag expressions, and those go through Jinja2's
:class:`~jinja2.sandbox.SandboxedEnvironment` with ``StrictUndefined``, so an
unknown name raises :class:`jinja2.UndefinedError` and unsafe attribute
access raises :class:`jinja2.exceptions.SecurityError`.

Output is collected in a :class:`CaptureSink` owned by the render call.  The
sink is closed on every exit path, including when an expression raises, and
faults are never caught here: they propagate to the caller unchanged.
"""

from __future__ import annotations

import io
import logging
import re
from collections import ChainMap
from collections.abc import Generator, Iterable, Mapping
from contextlib import contextmanager
from functools import lru_cache
from html import escape as html_escape
from pathlib import Path
from typing import Any

from jinja2 import StrictUndefined
from jinja2.sandbox import SandboxedEnvironment

from modello.nodes import Echo, ForEach, If, Literal, Node, Template

logger = logging.getLogger(__name__)

EXPRESSION_CACHE_SIZE = 512

# A quoted string (kept as-is) or a ``$`` sigil in front of an identifier.
_SIGIL = re.compile(r"""('(?:\\.|[^'\\])*'|"(?:\\.|[^"\\])*")|\$(?=[A-Za-z_])""")


def strip_sigils(expr: str) -> str:
    """Drop ``$`` variable sigils outside string literals (``$a.b`` -> ``a.b``)."""
    return _SIGIL.sub(lambda m: m.group(1) or "", expr)


def escape_value(value: Any) -> str:
    """String form of *value* for ``{{ }}`` output, HTML-escaped.

    ``None`` renders as the empty string.
    """
    if value is None:
        return ""
    return html_escape(str(value), quote=True)


class CaptureSink:
    """Buffer for everything a render writes."""

    def __init__(self) -> None:
        self._buffer = io.StringIO()

    def write(self, text: str) -> None:
        self._buffer.write(text)

    def getvalue(self) -> str:
        return self._buffer.getvalue()

    def close(self) -> None:
        self._buffer.close()

    @property
    def closed(self) -> bool:
        return self._buffer.closed


@contextmanager
def capture() -> Generator[CaptureSink, None, None]:
    """Open a fresh capture sink and close it however the block exits."""
    sink = CaptureSink()
    try:
        yield sink
    finally:
        sink.close()


class ExpressionEvaluator:
    """Evaluate tag expressions with a sandboxed Jinja2 environment.

    Compiled expressions are kept in a per-instance LRU cache of
    *cache_size* entries; the evaluator holds no per-render state, so one
    instance can serve any number of renders.
    """

    def __init__(
        self,
        environment: SandboxedEnvironment | None = None,
        cache_size: int = EXPRESSION_CACHE_SIZE,
    ) -> None:
        self.environment = environment or SandboxedEnvironment(undefined=StrictUndefined)
        self.compile = lru_cache(maxsize=cache_size)(self._compile)

    def _compile(self, expr: str) -> Any:
        return self.environment.compile_expression(
            strip_sigils(expr), undefined_to_none=False,
        )

    def evaluate(self, expr: str, variables: Mapping[str, Any]) -> Any:
        return self.compile(expr)(dict(variables))


class ExecutionScope:
    """Variables and output sink for one render.

    The caller's bindings are copied into the bottom layer of a
    :class:`~collections.ChainMap`.  Each loop iteration pushes a fresh
    layer for its loop variables, so they vanish at ``@endforeach`` and the
    caller's mapping is never written to.
    """

    def __init__(
        self,
        bindings: Mapping[str, Any],
        sink: CaptureSink,
        evaluator: ExpressionEvaluator,
    ) -> None:
        self.variables: ChainMap[str, Any] = ChainMap(dict(bindings))
        self.sink = sink
        self.evaluator = evaluator

    def evaluate(self, expr: str) -> Any:
        return self.evaluator.evaluate(expr, self.variables)

    @contextmanager
    def layer(self) -> Generator[dict[str, Any], None, None]:
        """Push a variable layer for the duration of the block."""
        self.variables = self.variables.new_child()
        try:
            yield self.variables.maps[0]
        finally:
            self.variables = self.variables.parents

    def run(self, nodes: list[Node]) -> None:
        for node in nodes:
            if isinstance(node, Literal):
                self.sink.write(node.text)
            elif isinstance(node, Echo):
                self.sink.write(escape_value(self.evaluate(node.expr)))
            elif isinstance(node, If):
                self._run_if(node)
            elif isinstance(node, ForEach):
                self._run_foreach(node)
            else:
                raise TypeError(f"Unknown instruction: {node!r}")

    def _run_if(self, node: If) -> None:
        for branch in node.branches:
            if self.evaluate(branch.cond):
                self.run(branch.body)
                return
        if node.else_body is not None:
            self.run(node.else_body)

    def _run_foreach(self, node: ForEach) -> None:
        collection = self.evaluate(node.iterable)
        for key, value in _iterate(collection):
            with self.layer() as scope:
                if node.key is not None:
                    scope[node.key] = key
                scope[node.value] = value
                self.run(node.body)


def _iterate(collection: Any) -> Iterable[tuple[Any, Any]]:
    """(key, value) pairs: mapping items, otherwise positional indices."""
    if isinstance(collection, Mapping):
        return collection.items()
    return enumerate(collection)


def run_template(
    template: Template,
    bindings: Mapping[str, Any] | None = None,
    evaluator: ExpressionEvaluator | None = None,
) -> str:
    """Render an in-memory :class:`Template` and return its output."""
    evaluator = evaluator or ExpressionEvaluator()
    with capture() as sink:
        ExecutionScope(bindings or {}, sink, evaluator).run(template.nodes)
        return sink.getvalue()


def execute(
    artifact: str | Path,
    bindings: Mapping[str, Any] | None = None,
    evaluator: ExpressionEvaluator | None = None,
) -> str:
    """Load the artifact at *artifact* and render it with *bindings*."""
    path = Path(artifact)
    template = Template.loads(path.read_text(encoding="utf-8"))
    logger.debug("Executing %s with %d binding(s)", path.name, len(bindings or {}))
    return run_template(template, bindings, evaluator)
