import io
import logging
import os

import pytest
import rcssmin
import rjsmin
from webassets.filter import get_filter

from combiner.assets import AssetCollection, make_environment
from combiner.combiner import Combiner
from combiner.exceptions import AssetNotFound
from combiner.filters import (
    CacheKeyAwareFilter,
    CssImportFilter,
    ImportHashingFilter,
    JavascriptImporter,
    LessCompiler,
    ScssCompiler,
)


def _input(flt, path) -> str:
    out = io.StringIO()
    flt.input(io.StringIO(path.read_text(encoding="utf-8")), out, source=path.name, source_path=str(path))
    return out.getvalue()


def test_require_inlines_once_and_include_every_time(tmp_path) -> None:
    (tmp_path / "lib.js").write_text("lib();\n", encoding="utf-8")
    main = tmp_path / "main.js"
    main.write_text(
        "// =require lib\n/* =require lib.js */\n// =include lib.js\n// =include lib\nmain();\n",
        encoding="utf-8",
    )

    content = _input(JavascriptImporter(), main)

    assert content.count("lib();") == 3
    assert "=require" not in content
    assert content.endswith("main();\n")


def test_require_of_missing_file_raises(tmp_path) -> None:
    main = tmp_path / "main.js"
    main.write_text("// =require nowhere.js\n", encoding="utf-8")

    with pytest.raises(AssetNotFound):
        _input(JavascriptImporter(), main)


def test_require_cycle_inlines_each_file_once(tmp_path) -> None:
    a = tmp_path / "a.js"
    a.write_text("// =require b\na();\n", encoding="utf-8")
    (tmp_path / "b.js").write_text("// =require a\nb();\n", encoding="utf-8")

    content = _input(JavascriptImporter(), a)

    assert content.count("a();") == 1
    assert content.count("b();") == 1
    assert content.index("b();") < content.index("a();")


def test_self_include_is_skipped(tmp_path, caplog) -> None:
    caplog.set_level(logging.WARNING, logger="combiner")
    main = tmp_path / "main.js"
    main.write_text("// =include main.js\nmain();\n", encoding="utf-8")

    content = _input(JavascriptImporter(), main)

    assert content.count("main();") == 1
    assert "circular" in caplog.text


def test_import_graph_is_transitive(tmp_path) -> None:
    (tmp_path / "c.js").write_text("c();\n", encoding="utf-8")
    (tmp_path / "b.js").write_text("// =require c\n", encoding="utf-8")
    (tmp_path / "a.js").write_text("// =require b\n", encoding="utf-8")

    graph = JavascriptImporter().import_graph(str(tmp_path / "a.js"))

    assert graph == [str(tmp_path / "b.js"), str(tmp_path / "c.js")]


def test_css_import_inlines_only_local_unconditional_css(tmp_path) -> None:
    (tmp_path / "base.css").write_text("html{}", encoding="utf-8")
    site = tmp_path / "site.css"
    site.write_text(
        '@import "base.css";\n'
        '@import url("print.css") print;\n'
        '@import url(https://fonts.example.com/x.css);\n'
        "body{}\n",
        encoding="utf-8",
    )

    content = _input(CssImportFilter(), site)

    assert content.startswith("html{}\n")
    assert '@import url("print.css") print;' in content
    assert "@import url(https://fonts.example.com/x.css);" in content


def test_css_import_rebases_urls_of_imported_files(tmp_path) -> None:
    (tmp_path / "parts").mkdir()
    (tmp_path / "parts" / "base.css").write_text(
        'a{background:url("icons/x.png")}b{background:url(/abs.png)}', encoding="utf-8",
    )
    site = tmp_path / "site.css"
    site.write_text('@import "parts/base.css";\n', encoding="utf-8")

    content = _input(CssImportFilter(), site)

    assert 'url("parts/icons/x.png")' in content
    assert "url(/abs.png)" in content


def test_cssrewrite_rebases_to_the_target_path(tmp_path) -> None:
    css_dir = tmp_path / "app" / "css"
    css_dir.mkdir(parents=True)
    site = css_dir / "site.css"
    site.write_text(
        "a{background:url('../img/a.png?v=2')}"
        "b{background:url(/abs.png)}"
        "c{background:url(data:image/png;base64,AAAA)}",
        encoding="utf-8",
    )
    env = make_environment(str(tmp_path))

    content = AssetCollection(env, [(str(site), [get_filter("cssrewrite")])], "combine/").dump()

    assert "url('../app/img/a.png?v=2')" in content
    assert "url(/abs.png)" in content
    assert "url(data:image/png;base64,AAAA)" in content


def test_imported_urls_resolve_from_the_imported_file(tmp_path) -> None:
    parts = tmp_path / "app" / "css" / "parts"
    parts.mkdir(parents=True)
    (parts / "base.css").write_text('i{background:url("icons/x.png")}\n', encoding="utf-8")
    site = tmp_path / "app" / "css" / "site.css"
    site.write_text('@import "parts/base.css";\n', encoding="utf-8")
    env = make_environment(str(tmp_path))

    filters = [CssImportFilter(), get_filter("cssrewrite")]
    content = AssetCollection(env, [(str(site), filters)], "combine/").dump()

    assert 'url("../app/css/parts/icons/x.png")' in content


def test_minifiers_delegate_to_rjsmin_and_rcssmin(tmp_path) -> None:
    script = "var  a = 1 ;\n// note\nfunction f ( ) { return a ; }\n"
    style = "body {\n  color : red ;\n}\n/* note */\n"
    (tmp_path / "a.js").write_text(script, encoding="utf-8")
    (tmp_path / "a.css").write_text(style, encoding="utf-8")
    env = make_environment(str(tmp_path))

    js = AssetCollection(env, [(str(tmp_path / "a.js"), [get_filter("rjsmin")])]).dump()
    css = AssetCollection(env, [(str(tmp_path / "a.css"), [get_filter("rcssmin")])]).dump()

    assert js == rjsmin.jsmin(script)
    assert css == rcssmin.cssmin(style)


def test_capabilities_are_declared_by_type() -> None:
    assert isinstance(ScssCompiler(), CacheKeyAwareFilter)
    assert isinstance(ScssCompiler(), ImportHashingFilter)
    assert isinstance(LessCompiler(), ImportHashingFilter)
    assert not isinstance(get_filter("rjsmin"), ImportHashingFilter)
    assert not isinstance(get_filter("cssrewrite"), CacheKeyAwareFilter)


def test_scss_imports_resolve_partials(tmp_path) -> None:
    (tmp_path / "_vars.scss").write_text("$c: red;\n", encoding="utf-8")
    (tmp_path / "main.scss").write_text('@import "vars";\nbody { color: $c; }\n', encoding="utf-8")

    assert ScssCompiler().imports(str(tmp_path / "main.scss")) == [str(tmp_path / "_vars.scss")]


def test_import_cache_keys_follow_imported_timestamps(tmp_path) -> None:
    (tmp_path / "base.css").write_text("html{}", encoding="utf-8")
    site = tmp_path / "site.css"
    site.write_text('@import "base.css";\n', encoding="utf-8")
    flt = CssImportFilter()

    before = flt.get_additional_cache_keys(source_path=str(site))
    os.utime(tmp_path / "base.css", (2_000_000_000, 2_000_000_000))

    assert flt.get_additional_cache_keys(source_path=str(site)) != before


def test_asset_cache_reuses_filtered_files(tmp_path) -> None:
    source = tmp_path / "a.js"
    source.write_text("a();\n", encoding="utf-8")
    env = make_environment(str(tmp_path), str(tmp_path / "cache"))
    calls = []

    class Counting(CacheKeyAwareFilter):
        name = "counting"

        def input(self, _in, out, **kw):
            calls.append(kw["source_path"])
            out.write(_in.read())

    def collection(hash):
        counting = Counting()
        counting.set_hash(hash)
        return AssetCollection(env, [(str(source), [counting])])

    assert collection("key-1").dump() == "a();\n"
    assert collection("key-1").dump() == "a();\n"
    assert len(calls) == 1

    collection("key-2").dump()
    assert len(calls) == 2


def test_each_build_gets_its_own_filters(tmp_path) -> None:
    shared = CssImportFilter()
    combiner = Combiner(store=None, public_path=str(tmp_path), use_deep_hashing=True)
    combiner.reset_filters("less")
    combiner.register_filter("less", LessCompiler).register_filter("less", shared)

    first = combiner.build_filters("less", "key-a")
    second = combiner.build_filters("less", "key-b")

    assert first[0] is not second[0]
    assert (first[0].hash, second[0].hash) == ("key-a", "key-b")
    assert first[1] is not shared
    assert combiner.get_filters("less")[0] is LessCompiler


def test_empty_collection_has_no_timestamp(tmp_path) -> None:
    env = make_environment(str(tmp_path))

    assert AssetCollection(env, []).last_modified() == 0
    assert AssetCollection(env, []).dump() == ""
