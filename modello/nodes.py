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

"""Compiled template instructions and their JSON form.

A compiled template is a flat list of instructions, some of which carry
nested bodies.  The JSON text produced by :meth:`Template.dumps` is what the
cache stores and what the sandbox later loads; it is fully determined by the
node tree, so the same template text always yields the same artifact bytes.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

FORMAT_VERSION = 1


@dataclass
class Literal:
    """Template text copied to the output unchanged."""

    text: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "literal", "text": self.text}


@dataclass
class Echo:
    """``{{ expr }}``: evaluate and write the HTML-escaped result."""

    expr: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": "echo", "expr": self.expr}


@dataclass
class Branch:
    """One ``@if`` / ``@elseif`` arm."""

    cond: str
    body: list[Node] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"cond": self.cond, "body": [n.to_dict() for n in self.body]}


@dataclass
class If:
    """Conditional block: the first true branch runs, else ``else_body``."""

    branches: list[Branch] = field(default_factory=list)
    else_body: list[Node] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "if",
            "branches": [b.to_dict() for b in self.branches],
            "else": None if self.else_body is None else [n.to_dict() for n in self.else_body],
        }


@dataclass
class ForEach:
    """``@foreach(iterable as [key =>] value)`` loop."""

    iterable: str
    value: str
    key: str | None = None
    body: list[Node] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": "foreach",
            "iterable": self.iterable,
            "key": self.key,
            "value": self.value,
            "body": [n.to_dict() for n in self.body],
        }


Node = Union[Literal, Echo, If, ForEach]


def node_from_dict(data: dict[str, Any]) -> Node:
    """Rebuild a node from its :meth:`to_dict` form."""
    kind = data.get("type")
    if kind == "literal":
        return Literal(text=data["text"])
    if kind == "echo":
        return Echo(expr=data["expr"])
    if kind == "if":
        else_data = data.get("else")
        return If(
            branches=[
                Branch(cond=b["cond"], body=_nodes_from_list(b["body"]))
                for b in data["branches"]
            ],
            else_body=None if else_data is None else _nodes_from_list(else_data),
        )
    if kind == "foreach":
        return ForEach(
            iterable=data["iterable"],
            key=data.get("key"),
            value=data["value"],
            body=_nodes_from_list(data["body"]),
        )
    raise ValueError(f"Unknown instruction type: {kind!r}")


def _nodes_from_list(items: list[dict[str, Any]]) -> list[Node]:
    return [node_from_dict(item) for item in items]


@dataclass
class Template:
    """Root of a compiled template."""

    nodes: list[Node] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {"version": FORMAT_VERSION, "nodes": [n.to_dict() for n in self.nodes]}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Template:
        version = data.get("version")
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported artifact version: {version!r}")
        return cls(nodes=_nodes_from_list(data["nodes"]))

    def dumps(self) -> str:
        """Serialise to canonical JSON text (sorted keys, no spacing)."""
        return json.dumps(
            self.to_dict(), sort_keys=True, ensure_ascii=False, separators=(",", ":"),
        )

    @classmethod
    def loads(cls, text: str) -> Template:
        return cls.from_dict(json.loads(text))
