"""
extension.py — Flask extension wiring the combiner into an app.

Registrations replace global callbacks: pass callables that receive the
Combiner once it is built, and register filters, aliases or bundles there.

    def register_theme(combiner):
        combiner.register_alias("framework", "assets/js/framework.js")

    asset_combiner = AssetCombiner(cache=cache, registrations=[register_theme])
    asset_combiner.init_app(app)
"""
import os
import logging

from cache.entry_store import EntryStore
from combiner.combiner import Combiner, combine
from combiner.commands import combiner_cli
from services.storage import get_disk

logger = logging.getLogger("combiner")


class AssetCombiner:
    """Builds one Combiner per app and stores it in ``app.extensions``."""

    def __init__(self, app=None, cache=None, registrations=(), before_prepare=(),
                 cache_key_hooks=()):
        self.cache = cache
        self.registrations = list(registrations)
        self.before_prepare = list(before_prepare)
        self.cache_key_hooks = list(cache_key_hooks)
        if app is not None:
            self.init_app(app)

    def init_app(self, app):
        app.config.setdefault("COMBINER_ENABLE_ASSET_CACHE", False)
        app.config.setdefault("COMBINER_ENABLE_ASSET_MINIFY", None)
        app.config.setdefault("COMBINER_ENABLE_ASSET_DEEP_HASHING", None)
        app.config.setdefault("COMBINER_STORAGE_DRIVER", "controller")
        app.config.setdefault("COMBINER_STORAGE_DISK", "local")
        app.config.setdefault("COMBINER_DISKS", {
            "local": {
                "driver": "local",
                "root": os.path.join(app.root_path, "static", "combined"),
                "url": "/static/combined",
            },
        })
        app.config.setdefault("COMBINER_ASSET_CACHE_DIR", None)
        app.config.setdefault("COMBINER_PUBLIC_PATH", app.root_path)
        app.config.setdefault("COMBINER_ALIASES", {})
        app.config.setdefault("COMBINER_BUNDLES", [])

        debug = bool(app.config.get("DEBUG", False))
        use_minify = app.config["COMBINER_ENABLE_ASSET_MINIFY"]
        if use_minify is None:
            use_minify = not debug
        use_deep_hashing = app.config["COMBINER_ENABLE_ASSET_DEEP_HASHING"]
        if use_deep_hashing is None:
            use_deep_hashing = debug

        driver = app.config["COMBINER_STORAGE_DRIVER"]
        disk = None
        if driver == "storage":
            disk = get_disk(app.config["COMBINER_DISKS"], app.config["COMBINER_STORAGE_DISK"])

        combiner = Combiner(
            EntryStore(self.cache),
            use_cache=bool(app.config["COMBINER_ENABLE_ASSET_CACHE"]),
            use_minify=use_minify,
            use_deep_hashing=use_deep_hashing,
            storage_driver=driver,
            storage_disk=disk,
            asset_cache_dir=app.config["COMBINER_ASSET_CACHE_DIR"],
            public_path=app.config["COMBINER_PUBLIC_PATH"],
            registrations=[self._register_from_config(app.config)] + self.registrations,
            before_prepare=self.before_prepare,
            cache_key_hooks=self.cache_key_hooks,
        )

        app.extensions["combiner"] = combiner
        app.add_template_global(combine, "combine_assets")
        app.cli.add_command(combiner_cli)

        logger.info(
            f"Combiner initialised: driver={driver}, cache={combiner.use_cache}, "
            f"minify={use_minify}, deep_hashing={use_deep_hashing}"
        )
        return combiner

    @staticmethod
    def _register_from_config(config):
        """Aliases and bundles declared in COMBINER_ALIASES / COMBINER_BUNDLES."""
        def register(combiner):
            for alias, target in config["COMBINER_ALIASES"].items():
                if isinstance(target, (list, tuple)):
                    combiner.register_alias(alias, *target)
                else:
                    combiner.register_alias(alias, target)
            for bundle in config["COMBINER_BUNDLES"]:
                combiner.register_bundle(
                    bundle["files"],
                    bundle.get("destination"),
                    bundle.get("extension"),
                )
        return register
