from pathlib import Path

import pytest

from app import create_app


@pytest.fixture
def public_dir(tmp_path: Path) -> Path:
    root = tmp_path / "public"
    (root / "app" / "css" / "parts").mkdir(parents=True)
    (root / "app" / "img").mkdir()
    (root / "app" / "a.js").write_text("var a = 1;\n", encoding="utf-8")
    (root / "app" / "b.js").write_text("var b = 2;\n", encoding="utf-8")
    (root / "app" / "css" / "site.css").write_text(
        '@import "parts/base.css";\nbody { background: url("../img/bg.png"); }\n',
        encoding="utf-8",
    )
    (root / "app" / "css" / "parts" / "base.css").write_text("html { margin: 0; }\n", encoding="utf-8")
    return root


@pytest.fixture
def app_dir(public_dir: Path) -> str:
    return str(public_dir / "app") + "/"


@pytest.fixture
def make_app(tmp_path: Path, public_dir: Path):
    def _make(**overrides):
        config = {
            "COMBINER_PUBLIC_PATH": str(public_dir),
            "COMBINER_ENABLE_ASSET_MINIFY": False,
            "COMBINER_ENABLE_ASSET_DEEP_HASHING": False,
            "COMBINER_DISKS": {
                "local": {
                    "driver": "local",
                    "root": str(public_dir / "combined"),
                    "url": "/static/combined",
                },
            },
        }
        config.update(overrides)
        return create_app("testing", config_overrides=config)

    return _make


@pytest.fixture
def app(make_app):
    return make_app()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def combiner(app):
    with app.test_request_context():
        yield app.extensions["combiner"]
