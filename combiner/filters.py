"""
filters.py — Per-extension webassets filters applied while combining assets.

Compilation, url rebasing and minification come straight from webassets:
``cssrewrite``, ``rjsmin``, ``rcssmin`` and the ``less`` / ``libsass``
compilers. The filters here cover what webassets has no filter for
(``=require`` directives and plain CSS ``@import`` inlining) and add the two
optional capabilities the combiner looks for with ``isinstance``:

- CacheKeyAwareFilter — accepts the combination key via ``set_hash``.
- ImportHashingFilter — reports the files a source imports, so cache keys,
  timestamps and the webassets cache follow the import graph.
"""

import os
import re
import hashlib
import logging

from webassets.filter import Filter
from webassets.filter.less import Less
from webassets.filter.libsass import LibSass

from combiner.exceptions import AssetNotFound

logger = logging.getLogger("combiner")


class CacheKeyAwareFilter(Filter):
    hash = None

    def set_hash(self, hash):
        self.hash = hash

    def get_additional_cache_keys(self, **kw):
        keys = list(super().get_additional_cache_keys(**kw))
        if self.hash:
            keys.append(self.hash)
        return keys


class ImportHashingFilter(Filter):
    """Filter whose output depends on files imported by the source."""

    def imports(self, path):
        """Direct imports of ``path`` as resolved file paths."""
        return []

    def import_graph(self, path):
        """All files reachable from ``path`` through imports, in discovery order."""
        found = []
        pending = [path]
        while pending:
            current = pending.pop(0)
            if not os.path.isfile(current):
                continue
            for child in self.imports(current):
                if child not in found and child != path:
                    found.append(child)
                    pending.append(child)
        return found

    def hash_asset(self, path, base_path):
        parts = [path]
        for child in self.import_graph(path):
            try:
                mtime = int(os.path.getmtime(child))
            except OSError:
                mtime = 0
            parts.append(f"{child}:{mtime}")
        return hashlib.md5("|".join(parts).encode("utf-8")).hexdigest()

    def get_additional_cache_keys(self, **kw):
        keys = list(super().get_additional_cache_keys(**kw))
        source_path = kw.get("source_path")
        if source_path:
            keys.append(self.hash_asset(source_path, None))
        return keys


def _read(path):
    with open(path, encoding="utf-8") as f:
        return f.read()


def _resolve_import(base_dir, name, extension, partials=False):
    """Find the file an import statement refers to, or None."""
    candidates = [name]
    if not os.path.splitext(name)[1]:
        candidates.append(f"{name}.{extension}")
        if partials:
            head, tail = os.path.split(name)
            candidates.append(os.path.join(head, f"_{tail}.{extension}"))
    for candidate in candidates:
        path = os.path.normpath(os.path.join(base_dir, candidate))
        if os.path.isfile(path):
            return path
    return None


def _is_local_url(url):
    return not (
        url.startswith(("/", "#", "data:", "//"))
        or "://" in url
    )


# ── Scripts ────────────────────────────────────────────────────────────────

class JavascriptImporter(ImportHashingFilter):
    """
    Expands ``=require`` and ``=include`` directives written as comments:

        // =require vendor/jquery.js
        /* =include partials/banner */

    ``require`` inlines a file once per combined asset, ``include`` every
    time it appears. Paths are relative to the file holding the directive
    and default to a ``.js`` extension. A file never includes itself through
    its own chain of directives.
    """

    name = "js_directives"

    directive_re = re.compile(
        r"^[ \t]*(?://|/\*)[ \t]*=(require|include)[ \t]+([^\s*]+)[ \t]*(?:\*/)?[ \t]*$",
        re.MULTILINE,
    )

    def input(self, _in, out, **kw):
        source_path = kw["source_path"]
        out.write(self._expand(source_path, _in.read(), {source_path}, [source_path]))

    def _expand(self, path, content, required, stack):
        base_dir = os.path.dirname(path)

        def replace(match):
            directive, name = match.group(1), match.group(2)
            target = _resolve_import(base_dir, name, "js")
            if target is None:
                raise AssetNotFound(os.path.join(base_dir, name))
            if target in stack:
                logger.warning(f"Skipping circular {directive} of {target} in {path}")
                return ""
            if directive == "require":
                if target in required:
                    return ""
                required.add(target)
            return self._expand(target, _read(target), required, stack + [target])

        return self.directive_re.sub(replace, content)

    def imports(self, path):
        base_dir = os.path.dirname(path)
        found = []
        for _, name in self.directive_re.findall(_read(path)):
            target = _resolve_import(base_dir, name, "js")
            if target is not None:
                found.append(target)
        return found


# ── Stylesheets ────────────────────────────────────────────────────────────

class CssImportFilter(ImportHashingFilter):
    """
    Inlines ``@import`` of local, unconditional .css files. Relative urls of
    an inlined file are rebased onto the importing file, so ``cssrewrite``
    later sees them as if they were written there.
    """

    name = "css_import"

    import_re = re.compile(
        r"""@import\s+(?:url\(\s*)?(['"]?)([^'")\s;]+)\1\s*\)?\s*([^;]*);""",
    )
    url_re = re.compile(r"""url\(\s*(['"]?)([^'")]+)\1\s*\)""")

    def input(self, _in, out, **kw):
        source_path = kw["source_path"]
        out.write(self._inline(source_path, _in.read(), [source_path]))

    def _target(self, base_dir, url, media):
        if media.strip() or not _is_local_url(url) or not url.endswith(".css"):
            return None
        return _resolve_import(base_dir, url, "css")

    def _inline(self, path, content, stack):
        base_dir = os.path.dirname(path)

        def replace(match):
            target = self._target(base_dir, match.group(2), match.group(3))
            if target is None or target in stack:
                return match.group(0)
            inlined = self._inline(target, _read(target), stack + [target])
            return self._rebase(inlined, os.path.dirname(target), base_dir)

        return self.import_re.sub(replace, content)

    def _rebase(self, content, from_dir, to_dir):
        if from_dir == to_dir:
            return content

        def replace(match):
            quote, url = match.group(1), match.group(2).strip()
            if not _is_local_url(url):
                return match.group(0)
            rebased = os.path.relpath(os.path.join(from_dir, url), to_dir)
            return f"url({quote}{rebased.replace(os.sep, '/')}{quote})"

        return self.url_re.sub(replace, content)

    def imports(self, path):
        base_dir = os.path.dirname(path)
        found = []
        for _, url, media in self.import_re.findall(_read(path)):
            target = self._target(base_dir, url, media)
            if target is not None:
                found.append(target)
        return found


# ── Preprocessors ──────────────────────────────────────────────────────────

class LessCompiler(CacheKeyAwareFilter, ImportHashingFilter, Less):
    """webassets ``less`` filter (the ``lessc`` binary) with import tracking."""

    import_re = re.compile(r"""@import\s+(?:\([^)]*\)\s*)?['"]([^'"]+)['"]""")

    def __init__(self, binary="lessc"):
        super().__init__()
        self.binary = binary

    def setup(self):
        super().setup()
        self.less = getattr(self, "less", None) or self.binary

    def imports(self, path):
        base_dir = os.path.dirname(path)
        found = []
        for name in self.import_re.findall(_read(path)):
            target = _resolve_import(base_dir, name, "less")
            if target is not None:
                found.append(target)
        return found


class ScssCompiler(CacheKeyAwareFilter, ImportHashingFilter, LibSass):
    """webassets ``libsass`` filter with import tracking, partials included."""

    import_re = re.compile(r"""@(?:import|use|forward)\s+['"]([^'"]+)['"]""")

    def __init__(self, output_style="expanded"):
        super().__init__()
        self.output_style = output_style

    def setup(self):
        super().setup()
        self.style = getattr(self, "style", None) or self.output_style

    def imports(self, path):
        base_dir = os.path.dirname(path)
        found = []
        for name in self.import_re.findall(_read(path)):
            target = _resolve_import(base_dir, name, "scss", partials=True)
            if target is not None:
                found.append(target)
        return found
