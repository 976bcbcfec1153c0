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

"""Minimal template compiler with an on-disk compile cache.

Templates use a small tag set:

* ``{{ expr }}`` — HTML-escaped output
* ``@if(cond)`` / ``@elseif(cond)`` / ``@else`` / ``@endif``
* ``@foreach(items as item)`` / ``@foreach(items as key => item)`` / ``@endforeach``
* ``@include('partials.header')``
* ``{-- comment --}``

Usage::

    from modello import Modello

    engine = Modello("templates")
    html = engine.bake("pages.home", {"title": "Welcome"})
"""

from modello.cache import CompiledCache, fingerprint
from modello.compiler import TemplateCompiler, TemplateSyntaxError
from modello.engine import Modello
from modello.loader import TemplateLoader
from modello.sandbox import ExpressionEvaluator, execute, run_template
from modello.simple import simple

__all__ = [
    "Modello",
    "TemplateCompiler",
    "TemplateSyntaxError",
    "TemplateLoader",
    "CompiledCache",
    "ExpressionEvaluator",
    "execute",
    "fingerprint",
    "run_template",
    "simple",
]
