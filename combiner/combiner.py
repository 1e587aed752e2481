"""
combiner.py — Combines JavaScript and stylesheet files into one served file.

The combiner takes a list of asset paths, derives a cache key from them and
records a CacheEntry under that key. The entry's version token
(``<key>-<last modified>``) becomes the URL of the combined file. When the
URL is requested the entry is looked up again and the files are compiled,
minified or both. ETag / Last-Modified headers let clients holding a fresh
copy skip the rebuild entirely.

    combiner.combine([
        "assets/vendor/mustache/mustache.js",
        "assets/js/vendor/jquery.ui.widget.js",
    ], "plugins/acme/blog")

Behaviour is controlled by:

- use_cache — reuse stored entries instead of recomputing timestamps
- use_minify — register the minification filters
- use_deep_hashing — follow imports when deriving keys and timestamps
"""

import os
import hashlib
import logging
import copy
import shutil
import importlib.util
from datetime import datetime, timezone

from flask import Response, current_app, has_request_context, request, url_for
from webassets.filter import Filter, get_filter
from werkzeug.http import is_resource_modified

from cache.entry_store import CacheEntry
from combiner.assets import AssetCollection, make_environment
from combiner.exceptions import CombinedFileNotFound, ForbiddenAssetPath, StorageConfigError
from combiner.filters import (
    CacheKeyAwareFilter,
    CssImportFilter,
    ImportHashingFilter,
    JavascriptImporter,
    LessCompiler,
    ScssCompiler,
)

logger = logging.getLogger("combiner")

JS_EXTENSIONS = ["js"]
CSS_EXTENSIONS = ["css", "less", "scss", "sass"]
PREPROCESSOR_EXTENSIONS = [ext for ext in CSS_EXTENSIONS if ext != "css"]

COMBINE_ENDPOINT = "combine.combine"
STORAGE_DRIVERS = ("controller", "storage")


def extension_of(path):
    return os.path.splitext(path)[1].lstrip(".").lower()


def combine(assets=None, local_path=None):
    """Combine assets with the current app's combiner and return the URL."""
    return current_app.extensions["combiner"].prepare_request(assets or [], local_path)


class Combiner:
    """Combines, caches and serves asset collections."""

    def __init__(self, store, use_cache=False, use_minify=False, use_deep_hashing=False,
                 storage_driver="controller", storage_disk=None, asset_cache_dir=None,
                 public_path=None, registrations=(), before_prepare=(), cache_key_hooks=()):
        if storage_driver not in STORAGE_DRIVERS:
            raise StorageConfigError(f"Unknown combiner storage driver '{storage_driver}'")
        if storage_driver == "storage" and storage_disk is None:
            raise StorageConfigError("The 'storage' driver needs a storage disk")

        self.store = store
        self.use_cache = use_cache
        self.use_minify = use_minify
        self.use_deep_hashing = use_deep_hashing
        self.storage_driver = storage_driver
        self.storage_disk = storage_disk
        self.asset_cache_dir = asset_cache_dir
        self.public_path = public_path or os.getcwd()
        self.public_root = os.path.realpath(self.public_path)
        self.environment = make_environment(self.public_root, asset_cache_dir)

        self._filters = {}
        self._aliases = {}
        self._bundles = {}
        self._before_prepare = list(before_prepare)
        self._cache_key_hooks = list(cache_key_hooks)

        self._register_default_filters()

        for register in registrations:
            register(self)

    def _register_default_filters(self):
        self.register_filter("js", JavascriptImporter)

        if shutil.which("lessc"):
            self.register_filter("less", LessCompiler)
        if importlib.util.find_spec("sass") is not None:
            self.register_filter("scss", ScssCompiler)

        self.register_filter("css", CssImportFilter)
        self.register_filter(["css", "less", "scss"], "cssrewrite")

        if self.use_minify:
            self.register_filter("js", "rjsmin")
            self.register_filter(["css", "less", "scss"], "rcssmin")

    # ── Entry points ───────────────────────────────────────────────────────

    def prepare_request(self, assets, local_path=None):
        """Resolve ``assets`` to a cache entry and return its URL."""
        local_path = self._normalize_local_path(local_path)
        assets, extension = self.prepare_assets(assets)

        cache_key = self.get_cache_key(assets, local_path)
        entry = self.store.get(cache_key) if self.use_cache else None

        if entry is None:
            collection = self.prepare_combiner(assets, local_path, cache_key=cache_key)

            if self.use_deep_hashing:
                last_modified = collection.deep_last_modified()
            else:
                last_modified = collection.last_modified()

            entry = CacheEntry(
                version=f"{cache_key}-{last_modified}",
                etag=cache_key,
                last_modified=last_modified,
                files=tuple(assets),
                path=local_path,
                extension=extension,
            )
            self.store.put(cache_key, entry)

        return self.get_combined_url(entry)

    def combine_to_file(self, assets, destination, local_path=None):
        """Write the combined assets to ``destination``, bypassing the cache."""
        local_path = self._normalize_local_path(local_path)
        assets, _ = self.prepare_assets(assets)

        rewrite_path = self._public_url_path(os.path.dirname(os.path.abspath(destination)))
        collection = self.prepare_combiner(assets, local_path, rewrite_path=rewrite_path)
        contents = collection.dump(use_cache=False)

        directory = os.path.dirname(destination)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(destination, "w", encoding="utf-8") as f:
            f.write(contents)

        logger.info(f"Combined {len(assets)} assets into {destination}")

    def get_contents(self, cache_key):
        """Rebuild the combined contents of a stored entry."""
        entry = self._require_entry(cache_key)
        collection = self.prepare_combiner(entry.files, entry.path, cache_key=cache_key)
        return collection.dump()

    def get_response(self, cache_key):
        """
        HTTP response for a stored entry. Clients whose ETag or
        If-Modified-Since still matches get a 304 and nothing is rebuilt.
        """
        entry = self._require_entry(cache_key)

        response = Response(mimetype=entry.mimetype)
        response.last_modified = datetime.fromtimestamp(entry.last_modified, tz=timezone.utc)
        response.set_etag(entry.etag)
        response.cache_control.public = True

        modified = is_resource_modified(
            request.environ,
            etag=entry.etag,
            last_modified=response.last_modified,
        )
        if not modified:
            response.status_code = 304
            self.store.stats.record_not_modified()
            return response

        collection = self.prepare_combiner(entry.files, entry.path, cache_key=cache_key)
        response.set_data(collection.dump())
        return response

    def reset_cache(self):
        return self.store.reset_all()

    # ── Preparation ────────────────────────────────────────────────────────

    def prepare_assets(self, assets):
        """
        Pick the single asset type of a request and apply aliases.

        Returns ``(assets, extension)`` where extension is "js" or "css".
        Stylesheets win only when they outnumber scripts.
        """
        if isinstance(assets, str):
            assets = [assets]

        combine_js = []
        combine_css = []

        for asset in assets:
            # Aliases have no extension until resolved
            if asset.startswith("@"):
                combine_js.append(asset)
                combine_css.append(asset)
                continue

            extension = extension_of(asset)
            if extension in JS_EXTENSIONS:
                combine_js.append(asset)
            elif extension in CSS_EXTENSIONS:
                combine_css.append(asset)

        if len(combine_css) > len(combine_js):
            extension, assets = "css", combine_css
        else:
            extension, assets = "js", combine_js

        alias_map = self.get_aliases(extension) or {}
        resolved = []
        for asset in assets:
            if asset.startswith("@"):
                alias = asset[1:]
                if alias in alias_map:
                    asset = alias_map[alias]
                else:
                    logger.warning(f"Unknown {extension} asset alias '{asset}', leaving as is")
            resolved.append(asset)

        return resolved, extension

    def prepare_combiner(self, assets, local_path, rewrite_path=None, cache_key=None):
        """Build the AssetCollection for ``assets`` in request order."""
        assets = list(assets)
        for hook in self._before_prepare:
            result = hook(assets)
            if result is not None:
                assets = list(result)

        sources = []
        for asset in assets:
            path = self._resolve_asset_path(asset, local_path)
            sources.append((path, self.build_filters(extension_of(asset), cache_key)))

        return AssetCollection(self.environment, sources, target_path=self.get_target_path(rewrite_path))

    def build_filters(self, extension, hash=None):
        """
        Fresh filter instances for one build. Registered names and classes
        are instantiated, registered instances are copied, so a build never
        shares filter state with another.
        """
        filters = []
        for registered in self.get_filters(extension) or []:
            if isinstance(registered, Filter):
                filters.append(copy.copy(registered))
            else:
                filters.append(get_filter(registered))
        if hash is not None:
            self.set_hash_on_combiner_filters(filters, hash)
        return filters

    @staticmethod
    def set_hash_on_combiner_filters(filters, hash):
        for flt in filters:
            if isinstance(flt, CacheKeyAwareFilter):
                flt.set_hash(hash)

    def get_deep_hash_from_assets(self, assets, local_path):
        key = ""
        for asset in assets:
            path = self._resolve_asset_path(asset, local_path)
            for flt in self.build_filters(extension_of(path)):
                if isinstance(flt, ImportHashingFilter):
                    key += flt.hash_asset(path, local_path)
        return key

    def get_cache_key(self, assets, local_path=""):
        """md5 of the base path and asset list, plus import hashes when deep hashing."""
        cache_key = local_path + "|".join(assets)

        if self.use_deep_hashing:
            cache_key += self.get_deep_hash_from_assets(assets, local_path)

        for hook in self._cache_key_hooks:
            result = hook(cache_key)
            if result is not None:
                cache_key = result

        return hashlib.md5(cache_key.encode("utf-8")).hexdigest()

    # ── Delivery ───────────────────────────────────────────────────────────

    def get_combined_url(self, entry):
        if self.storage_driver == "storage":
            return self._storage_url(entry)
        return self._route_url(entry.version)

    def _route_url(self, version):
        if COMBINE_ENDPOINT not in current_app.view_functions:
            return f"/combine/{version}"
        if has_request_context():
            return url_for(COMBINE_ENDPOINT, name=version)
        adapter = current_app.url_map.bind("localhost")
        return adapter.build(COMBINE_ENDPOINT, {"name": version})

    def _storage_url(self, entry):
        name = f"{entry.version}.{entry.extension}"
        disk = self.storage_disk

        if not disk.exists(name):
            try:
                disk.put(name, self.get_contents(entry.etag))
            except Exception as e:
                logger.error(f"Failed to store combined file {name}: {e}")
                return None

        return disk.url(name)

    def get_target_path(self, path=None):
        """
        Target path used to rebase relative stylesheet urls.

            /combine              returns combine/
            /index.php/combine    returns index-php/combine/
        """
        if path is None:
            base_uri = request.script_root if has_request_context() else ""
            path = base_uri + "/combine"

        if path.startswith("/"):
            path = path[1:]

        return path.replace(".", "-") + "/"

    # ── Filters ────────────────────────────────────────────────────────────

    def register_filter(self, extension, filter):
        if isinstance(extension, (list, tuple)):
            for ext in extension:
                self.register_filter(ext, filter)
            return self

        filters = self._filters.setdefault(extension.lower(), [])
        if filter is not None:
            filters.append(filter)
        return self

    def reset_filters(self, extension=None):
        if extension is None:
            self._filters = {}
        else:
            self._filters[extension.lower()] = []
        return self

    def get_filters(self, extension=None):
        if extension is None:
            return self._filters
        return self._filters.get(extension.lower())

    # ── Aliases ────────────────────────────────────────────────────────────

    def register_alias(self, alias, file, extension=None):
        """Register ``@alias`` as a short name for ``file``."""
        if extension is None:
            extension = extension_of(file)
        self._aliases.setdefault(extension.lower(), {})[alias] = file
        return self

    def reset_aliases(self, extension=None):
        if extension is None:
            self._aliases = {}
        else:
            self._aliases[extension.lower()] = {}
        return self

    def get_aliases(self, extension=None):
        if extension is None:
            return self._aliases
        return self._aliases.get(extension.lower())

    # ── Bundles ────────────────────────────────────────────────────────────

    def register_bundle(self, files, destination=None, extension=None):
        """
        Register files to compile ahead of time with ``build_bundles``.

        Without a destination, ``less/theme.less`` compiles to
        ``css/theme.css`` when that sibling folder exists (``less/theme.css``
        otherwise) and ``js/app.js`` to ``js/app-min.js``.
        """
        if isinstance(files, str):
            files = [files]
        files = list(files)
        first_file = files[0]

        if extension is None:
            extension = extension_of(first_file)
        extension = extension.strip().lower()

        if destination is None:
            name = os.path.splitext(os.path.basename(first_file))[0]
            path = os.path.dirname(first_file)

            if extension in PREPROCESSOR_EXTENSIONS:
                css_path = os.path.normpath(os.path.join(path, "..", "css"))
                if os.path.basename(path).lower() in PREPROCESSOR_EXTENSIONS and os.path.isdir(css_path):
                    path = css_path
                destination = os.path.join(path, f"{name}.css")
            else:
                destination = os.path.join(path, f"{name}-min.{extension}")

        self._bundles.setdefault(extension, {})[destination] = files
        return self

    def get_bundles(self, extension=None):
        if extension is None:
            return self._bundles
        return self._bundles.get(extension.lower())

    def build_bundles(self):
        """Compile every registered bundle; returns the written destinations."""
        written = []
        for bundles in self._bundles.values():
            for destination, files in bundles.items():
                self.combine_to_file(files, destination)
                written.append(destination)
        return written

    # ── Hooks ──────────────────────────────────────────────────────────────

    def on_before_prepare(self, hook):
        """``hook(assets) -> assets`` runs before each asset collection is built."""
        self._before_prepare.append(hook)
        return hook

    def on_cache_key(self, hook):
        """``hook(key_source) -> key_source`` may rewrite the string before hashing."""
        self._cache_key_hooks.append(hook)
        return hook

    # ── Helpers ────────────────────────────────────────────────────────────

    def _require_entry(self, cache_key):
        entry = self.store.get(cache_key)
        if entry is None:
            raise CombinedFileNotFound(cache_key)
        return entry

    def _normalize_local_path(self, local_path):
        if local_path is None:
            local_path = self.public_path
        if not self._is_public(os.path.realpath(self._base_dir(local_path))):
            raise ForbiddenAssetPath(local_path)
        if not local_path.endswith("/"):
            local_path += "/"
        return local_path

    def _base_dir(self, local_path):
        if os.path.isabs(local_path):
            return local_path
        return os.path.join(self.public_path, local_path)

    def _resolve_asset_path(self, asset, local_path):
        """Absolute path of ``asset``; it must live under the public directory."""
        if os.path.isabs(asset) and os.path.exists(asset):
            path = asset
        else:
            path = os.path.join(self._base_dir(local_path or ""), asset)
        path = os.path.realpath(path)
        if not self._is_public(path):
            raise ForbiddenAssetPath(asset)
        return path

    def _is_public(self, path):
        return path == self.public_root or path.startswith(self.public_root + os.sep)

    def _public_url_path(self, directory):
        """URL path of a public directory, None for directories outside it."""
        relative = os.path.relpath(os.path.realpath(directory), self.public_root)
        if relative == ".." or relative.startswith(".." + os.sep):
            return None
        return "/" + relative.replace(os.sep, "/") if relative != "." else "/"
