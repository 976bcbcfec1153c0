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

"""Tests for modello.engine and modello.loader."""

from __future__ import annotations

from unittest.mock import patch

import pytest
from jinja2 import UndefinedError

from modello import CompiledCache, Modello, TemplateLoader, TemplateSyntaxError, fingerprint


def _write(root, relative, text):
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path


class TestLoader:
    def test_dotted_name(self, tmp_path):
        loader = TemplateLoader(tmp_path)
        assert loader.resolve("emails.welcome") == (tmp_path / "emails" / "welcome.tmpl").resolve()

    def test_extension_without_dot(self, tmp_path):
        loader = TemplateLoader(tmp_path, extension="html")
        assert loader.resolve("index").name == "index.html"

    def test_read(self, tmp_path):
        _write(tmp_path, "a/b.tmpl", "content")
        assert TemplateLoader(tmp_path).read("a.b") == "content"

    def test_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            TemplateLoader(tmp_path).read("nope")

    def test_empty_name(self, tmp_path):
        with pytest.raises(ValueError):
            TemplateLoader(tmp_path).resolve("  ")


class TestBake:
    def test_creates_cache_directory(self, tmp_path):
        Modello(tmp_path)
        assert (tmp_path / "cached").is_dir()

    def test_render(self, tmp_path):
        _write(tmp_path, "pages/home.tmpl", "<p>{{ title }}</p>")
        engine = Modello(tmp_path)
        assert engine.bake("pages.home", {"title": "Fish & Chips"}) == "<p>Fish &amp; Chips</p>"

    def test_keyword_values(self, tmp_path):
        _write(tmp_path, "t.tmpl", "{{ a }}{{ b }}")
        engine = Modello(tmp_path)
        assert engine.bake("t", {"a": 1, "b": 2}, b=3) == "13"

    def test_full_page(self, tmp_path):
        _write(tmp_path, "partials/header.tmpl", "<h1>{{ title }}</h1>\n")
        _write(
            tmp_path,
            "page.tmpl",
            "@include('partials.header')"
            "{-- list of items --}"
            "<ul>@foreach(items as item)"
            "<li>@if(item.done)[x]@else[ ]@endif {{ item.name }}</li>"
            "@endforeach</ul>",
        )
        engine = Modello(tmp_path)
        html = engine.bake("page", {
            "title": "Todo",
            "items": [{"name": "<milk>", "done": True}, {"name": "eggs", "done": False}],
        })
        assert html == (
            "<h1>Todo</h1>\n"
            "<ul><li>[x] &lt;milk&gt;</li><li>[ ] eggs</li></ul>"
        )

    def test_keywords_named_like_parameters(self, tmp_path):
        _write(tmp_path, "hi.tmpl", "Hi {{ name }} ({{ values }})")
        engine = Modello(tmp_path)
        assert engine.bake("hi", name="Ada", values="v") == "Hi Ada (v)"
        assert engine.bake("hi", {"name": "Bob"}, values=1) == "Hi Bob (1)"

    def test_glued_else_is_rejected(self, tmp_path):
        _write(tmp_path, "t.tmpl", "@if(x)A@elseB@endif")
        with pytest.raises(TemplateSyntaxError, match="@elseB"):
            Modello(tmp_path).bake("t", x=False)

    def test_artifact_location(self, tmp_path):
        source = _write(tmp_path, "t.tmpl", "x")
        engine = Modello(tmp_path)
        artifact = engine.compile("t")
        assert artifact.parent == tmp_path / "cached"
        assert artifact.name == fingerprint(str(source.resolve())) + ".json"

    def test_custom_cache_dir_and_extension(self, tmp_path):
        _write(tmp_path, "templates/t.html", "{{ v }}")
        engine = Modello(tmp_path / "templates", extension=".html", cache_dir=tmp_path / "build")
        assert engine.bake("t", {"v": "ok"}) == "ok"
        assert len(list((tmp_path / "build").iterdir())) == 1

    def test_second_render_does_not_rewrite(self, tmp_path):
        _write(tmp_path, "t.tmpl", "{{ v }}")
        engine = Modello(tmp_path)
        artifact = engine.compile("t")
        before = artifact.stat().st_mtime_ns
        with patch.object(CompiledCache, "_write") as write:
            assert engine.bake("t", {"v": 1}) == "1"
        write.assert_not_called()
        assert artifact.stat().st_mtime_ns == before

    def test_source_change_is_picked_up(self, tmp_path):
        source = _write(tmp_path, "t.tmpl", "old {{ v }}")
        engine = Modello(tmp_path)
        assert engine.bake("t", {"v": 1}) == "old 1"
        source.write_text("new {{ v }}", encoding="utf-8")
        assert engine.bake("t", {"v": 1}) == "new 1"

    def test_included_change_is_picked_up(self, tmp_path):
        partial = _write(tmp_path, "p.tmpl", "v1")
        _write(tmp_path, "t.tmpl", "[@include('p')]")
        engine = Modello(tmp_path)
        assert engine.bake("t") == "[v1]"
        partial.write_text("v2", encoding="utf-8")
        assert engine.bake("t") == "[v2]"

    def test_bindings_are_per_call(self, tmp_path):
        _write(tmp_path, "t.tmpl", "{{ name }}")
        engine = Modello(tmp_path)
        assert engine.bake("t", {"name": "a"}) == "a"
        with pytest.raises(UndefinedError):
            engine.bake("t")

    def test_missing_template(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            Modello(tmp_path).bake("missing")

    def test_syntax_error_writes_nothing(self, tmp_path):
        _write(tmp_path, "bad.tmpl", "@if(x)@endforeach")
        engine = Modello(tmp_path)
        with pytest.raises(TemplateSyntaxError):
            engine.bake("bad", {"x": True})
        assert list((tmp_path / "cached").iterdir()) == []

    def test_cache_write_failure_propagates(self, tmp_path):
        _write(tmp_path, "t.tmpl", "x")
        engine = Modello(tmp_path)
        with patch("modello.cache.os.replace", side_effect=PermissionError("denied")):
            with pytest.raises(PermissionError):
                engine.bake("t")


class TestRenderString:
    def test_inline_template(self, tmp_path):
        engine = Modello(tmp_path)
        assert engine.render_string("@if(n > 1){{ n }} items@endif", n=3) == "3 items"

    def test_inline_include(self, tmp_path):
        _write(tmp_path, "sig.tmpl", "-- {{ who }}")
        engine = Modello(tmp_path)
        assert engine.render_string("Bye\n@include('sig')", who="me") == "Bye\n-- me"

    def test_keywords_named_like_parameters(self, tmp_path):
        engine = Modello(tmp_path)
        assert engine.render_string("{{ text }}/{{ values }}", text="x", values="y") == "x/y"

    def test_no_cache_entry(self, tmp_path):
        engine = Modello(tmp_path)
        engine.render_string("x")
        assert list((tmp_path / "cached").iterdir()) == []
