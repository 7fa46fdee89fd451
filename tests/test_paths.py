"""Asset path resolution and content type tests."""

from pathlib import Path

import pytest

from devreload.assets.paths import SecurityError, guess_content_type, resolve_asset


def test_resolves_file_inside_root(root: Path) -> None:
    assert resolve_asset(root, "main.wasm") == (root / "main.wasm").resolve()


def test_leading_slash_is_relative_to_root(root: Path) -> None:
    assert resolve_asset(root, "/index.html") == (root / "index.html").resolve()


def test_empty_path_maps_to_index(root: Path) -> None:
    assert resolve_asset(root, "") == (root / "index.html").resolve()


def test_directory_maps_to_its_index(root: Path) -> None:
    (root / "docs").mkdir()
    assert resolve_asset(root, "docs/") == (root / "docs" / "index.html").resolve()


def test_dots_inside_names_are_allowed(root: Path) -> None:
    assert resolve_asset(root, "app..v2.js").name == "app..v2.js"


@pytest.mark.parametrize(
    "path",
    [
        "../secret.txt",
        "/../secret.txt",
        "assets/../../secret.txt",
        "..\\secret.txt",
        "index.html\0.png",
    ],
)
def test_traversal_rejected(root: Path, path: str) -> None:
    with pytest.raises(SecurityError) as exc_info:
        resolve_asset(root, path)
    assert exc_info.value.path == path


def test_symlink_escaping_root_rejected(root: Path, tmp_path: Path) -> None:
    outside = tmp_path / "outside.txt"
    outside.write_text("secret")
    (root / "link.txt").symlink_to(outside)
    with pytest.raises(SecurityError):
        resolve_asset(root, "link.txt")


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("index.html", "text/html"),
        ("main.wasm", "application/wasm"),
        ("mq_js_bundle.js", "text/javascript"),
        ("style.css", "text/css"),
        ("blob.unknownext", "application/octet-stream"),
    ],
)
def test_guess_content_type(name: str, expected: str) -> None:
    assert guess_content_type(Path(name)) == expected
