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

"""Plain ``{{ key }}`` substitution with no compilation.

For the cases where a full template is overkill::

    simple("Hi {{ name }}", {"name": "Ada"})   # "Hi Ada"

Values are inserted as ``str(value)`` without escaping.  Tags whose key is
not in *values* are left exactly as written.
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any

_TAG = re.compile(r"\{\{\s*([A-Za-z0-9_-]+)\s*\}\}")


def simple(template: str | Path, values: Mapping[str, Any] | None = None) -> str:
    """Substitute ``{{ key }}`` tags in *template*.

    If *template* names a readable file its contents are used instead of
    the string itself.
    """
    text = str(template)
    if os.path.isfile(text) and os.access(text, os.R_OK):
        text = Path(text).read_text(encoding="utf-8")
    values = values or {}

    def replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key in values and values[key] is not None:
            return str(values[key])
        return match.group(0)

    return _TAG.sub(replace, text)
