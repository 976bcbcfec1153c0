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

"""Template lookup.

A template name is a dot-separated path relative to the template root,
without extension: ``"emails.welcome"`` resolves to
``<root>/emails/welcome.tmpl``.
"""

from __future__ import annotations

from pathlib import Path

DEFAULT_EXTENSION = ".tmpl"


class TemplateLoader:
    """Resolve dotted template names to files and read them as UTF-8."""

    def __init__(self, directory: str | Path, extension: str = DEFAULT_EXTENSION) -> None:
        self.directory = Path(directory).expanduser()
        if extension and not extension.startswith("."):
            extension = f".{extension}"
        self.extension = extension

    def resolve(self, name: str) -> Path:
        """Absolute path of the template called *name* (need not exist)."""
        parts = [p for p in name.strip().split(".") if p]
        if not parts:
            raise ValueError(f"Invalid template name: {name!r}")
        path = self.directory.joinpath(*parts)
        return path.with_name(path.name + self.extension).resolve()

    def read(self, name: str) -> str:
        """Raw text of *name*.  Raises ``FileNotFoundError`` if missing."""
        return self.resolve(name).read_text(encoding="utf-8")
