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

"""Template engine front end.

Resolution, compilation, caching and execution for one template root::

    from modello import Modello

    engine = Modello("~/site/templates")
    html = engine.bake("pages.home", {"user": user, "items": items})

``bake`` reads ``<root>/pages/home.tmpl``, compiles it, makes sure
``<root>/cached/<md5>.json`` holds the compiled artifact and renders that
artifact with the given values.  Nothing is retried; a missing template,
a cache write error or a fault raised while rendering propagates as is.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from jinja2.sandbox import SandboxedEnvironment

from modello.cache import CompiledCache
from modello.compiler import TemplateCompiler
from modello.loader import DEFAULT_EXTENSION, TemplateLoader
from modello.sandbox import ExpressionEvaluator, execute, run_template
from modello.simple import simple

logger = logging.getLogger(__name__)

CACHE_DIRNAME = "cached"


class Modello:
    """Compile and render templates stored under one directory.

    Args:
        directory: Template root.
        extension: File extension appended to template names.
        cache_dir: Where compiled artifacts go.  Defaults to
            ``<directory>/cached``; created if missing.
        environment: Sandboxed Jinja2 environment used to evaluate tag
            expressions, e.g. one with extra filters registered.
    """

    simple = staticmethod(simple)

    def __init__(
        self,
        directory: str | Path,
        extension: str = DEFAULT_EXTENSION,
        cache_dir: str | Path | None = None,
        environment: SandboxedEnvironment | None = None,
    ) -> None:
        self.loader = TemplateLoader(directory, extension)
        self.directory = self.loader.directory
        self.cache = CompiledCache(
            cache_dir if cache_dir is not None else self.directory / CACHE_DIRNAME
        )
        self.compiler = TemplateCompiler(include_resolver=self.loader.read)
        self.evaluator = ExpressionEvaluator(environment)

    def resolve(self, name: str) -> Path:
        """Path of the template file for *name*."""
        return self.loader.resolve(name)

    def compile(self, name: str) -> Path:
        """Compile *name* and bring its cached artifact up to date.

        Returns the artifact path.
        """
        path = self.loader.resolve(name)
        source = path.read_text(encoding="utf-8")
        compiled = self.compiler.compile(source)
        return self.cache.ensure_cached(path, compiled)

    def bake(
        self,
        name: str,
        values: Mapping[str, Any] | None = None,
        /,
        **variables: Any,
    ) -> str:
        """Render the template *name*.

        Variables come from *values* and/or keyword arguments; keywords win
        on conflicts, and may use any name, including ``name`` and
        ``values``.  They are visible to this render only.
        """
        bindings = dict(values or {})
        bindings.update(variables)
        artifact = self.compile(name)
        logger.debug("Baking %s", name)
        return execute(artifact, bindings, self.evaluator)

    def render_string(
        self,
        text: str,
        values: Mapping[str, Any] | None = None,
        /,
        **variables: Any,
    ) -> str:
        """Compile and render template *text* directly, bypassing the cache.

        ``@include`` still resolves against the template root.
        """
        bindings = dict(values or {})
        bindings.update(variables)
        return run_template(self.compiler.parse(text), bindings, self.evaluator)
