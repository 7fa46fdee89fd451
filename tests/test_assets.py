"""Asset server endpoint tests."""

from pathlib import Path

from fastapi.testclient import TestClient

from devreload.app import create_asset_app
from devreload.assets.client import CLIENT_SCRIPT_PATH, SCRIPT_TAG, inject_client
from devreload.config import Settings


def test_index_html_served_byte_exact(asset_client: TestClient, root: Path) -> None:
    """index.html comes back untouched with an HTML content type."""
    response = asset_client.get("/index.html")
    assert response.status_code == 200
    assert response.content == (root / "index.html").read_bytes()
    assert response.headers["content-type"].startswith("text/html")


def test_root_serves_index(asset_client: TestClient, root: Path) -> None:
    response = asset_client.get("/")
    assert response.status_code == 200
    assert response.content == (root / "index.html").read_bytes()


def test_wasm_content_type(asset_client: TestClient, root: Path) -> None:
    response = asset_client.get("/main.wasm")
    assert response.status_code == 200
    assert response.content == (root / "main.wasm").read_bytes()
    assert response.headers["content-type"] == "application/wasm"
    assert response.headers["cache-control"] == "no-cache"


def test_missing_file_is_404(asset_client: TestClient) -> None:
    assert asset_client.get("/nope.js").status_code == 404


def test_nested_file(asset_client: TestClient, root: Path) -> None:
    (root / "assets").mkdir()
    (root / "assets" / "font.css").write_text("body{}")
    response = asset_client.get("/assets/font.css")
    assert response.status_code == 200
    assert response.text == "body{}"


def test_encoded_traversal_rejected(asset_client: TestClient, root: Path) -> None:
    """Traversal segments never reach outside the root."""
    (root.parent / "secret.txt").write_text("top secret")
    response = asset_client.get("/%2e%2e/secret.txt")
    assert response.status_code == 404
    assert "top secret" not in response.text


def test_head_request(asset_client: TestClient) -> None:
    response = asset_client.head("/main.wasm")
    assert response.status_code == 200
    assert response.content == b""


def test_post_not_allowed(asset_client: TestClient) -> None:
    assert asset_client.post("/index.html").status_code == 405


def test_client_script_uses_notify_port(root: Path) -> None:
    settings = Settings(root=root, notify_bind="127.0.0.1:5555")
    client = TestClient(create_asset_app(settings))
    response = client.get(CLIENT_SCRIPT_PATH)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/javascript")
    assert "var port = 5555;" in response.text
    assert "location.reload()" in response.text


def test_inject_client_when_enabled(root: Path) -> None:
    settings = Settings(root=root, inject_client=True)
    client = TestClient(create_asset_app(settings))
    response = client.get("/index.html")
    assert response.status_code == 200
    assert SCRIPT_TAG in response.text
    assert response.text.index(SCRIPT_TAG) < response.text.index("</body>")


def test_inject_client_leaves_wasm_untouched(root: Path) -> None:
    settings = Settings(root=root, inject_client=True)
    client = TestClient(create_asset_app(settings))
    assert client.get("/main.wasm").content == (root / "main.wasm").read_bytes()


def test_inject_client_without_body_tag_appends() -> None:
    assert inject_client(b"<p>hi</p>") == b"<p>hi</p>" + SCRIPT_TAG.encode()
