from __future__ import annotations

import base64
from pathlib import Path

import pytest


def _basic(user: str, password: str) -> dict[str, str]:
    token = base64.b64encode(f"{user}:{password}".encode()).decode()
    return {"Authorization": f"Basic {token}"}


def test_serves_existing_file_with_default_cache_header(make_client) -> None:
    client = make_client()
    response = client.get("/styles.css")
    assert response.status_code == 200
    assert response.text == "body {}"
    assert response.headers["content-type"].startswith("text/css")
    assert response.headers["cache-control"] == "public, max-age=0"
    assert "etag" in response.headers


def test_unknown_extension_defaults_to_text_plain_and_html_in_spa_mode(make_client) -> None:
    assert make_client().get("/README").headers["content-type"].startswith("text/plain")
    spa = make_client(single_page_mode=True)
    assert spa.get("/README").headers["content-type"].startswith("text/html")


def test_dotfiles_are_served(make_client) -> None:
    response = make_client().get("/.env")
    assert response.status_code == 200
    assert response.text == "DOTFILE=1"


def test_missing_path_without_spa_returns_literal_not_found(make_client) -> None:
    response = make_client().get("/about")
    assert response.status_code == 404
    assert response.text == "Not Found"


def test_missing_path_uses_custom_404_document(make_client, site: Path) -> None:
    (site / "404.html").write_text("<p>custom missing</p>", encoding="utf-8")
    response = make_client().get("/about")
    assert response.status_code == 404
    assert response.text == "<p>custom missing</p>"
    assert response.headers["content-type"].startswith("text/html")


def test_directory_without_trailing_slash_redirects(make_client) -> None:
    response = make_client().get("/docs?x=1", follow_redirects=False)
    assert response.status_code == 302
    assert response.headers["location"] == "/docs/?x=1"


def test_directory_index_is_served(make_client) -> None:
    response = make_client().get("/docs/")
    assert response.status_code == 200
    assert response.text == "<h1>docs</h1>"
    assert response.headers["content-type"].startswith("text/html")


def test_directory_listing_rendered_when_no_index(make_client) -> None:
    response = make_client(asset_dir="/__assets").get("/files/")
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    body = response.text
    assert 'href="/files/a.txt"' in body
    assert 'href="/files/nested/"' in body
    assert 'href="/"' in body
    assert 'href="/__assets/listing.css"' in body


def test_listing_stylesheet_is_served_from_asset_namespace(make_client) -> None:
    response = make_client(asset_dir="/__assets").get("/__assets/listing.css")
    assert response.status_code == 200
    assert "ul.entries" in response.text


def test_root_listing_hides_ignored_entries(make_client, site: Path) -> None:
    (site / ".git").mkdir()
    (site / ".DS_Store").write_text("", encoding="utf-8")
    body = make_client().get("/").text
    assert ".git" not in body
    assert ".DS_Store" not in body
    assert 'href="/files/"' in body


def test_ignored_paths_are_not_served(make_client, site: Path) -> None:
    (site / ".git").mkdir()
    (site / ".git" / "config").write_text("[core]", encoding="utf-8")
    response = make_client().get("/.git/config")
    assert response.status_code == 404
    assert "[core]" not in response.text


def test_extra_ignored_substrings(make_client) -> None:
    client = make_client(ignored_substrings=(".DS_Store", ".git/", "styles"))
    assert client.get("/styles.css").status_code == 404


@pytest.mark.parametrize("path", ["/%2e%2e/secret.txt", "/..%2fsecret.txt", "/%2e%2e/site2/leak.txt"])
def test_traversal_outside_root_is_never_streamed(make_client, path: str) -> None:
    response = make_client().get(path)
    assert response.status_code == 404
    assert "TOP SECRET" not in response.text
    assert "SIBLING" not in response.text


def test_traversal_in_spa_mode_is_not_found(make_client, site: Path) -> None:
    (site / "index.html").write_text("<html>SPA</html>", encoding="utf-8")
    response = make_client(single_page_mode=True).get("/%2e%2e/secret.txt")
    assert response.status_code == 404
    assert "TOP SECRET" not in response.text


def test_spa_fallback_serves_basename_index_uncached(make_client, site: Path) -> None:
    (site / "app").mkdir()
    (site / "app" / "index.html").write_text("<html>app shell</html>", encoding="utf-8")
    client = make_client(single_page_mode=True, basename="/app", cache_max_age=3_600_000)

    response = client.get("/unknown/route")

    assert response.status_code == 200
    assert response.text == "<html>app shell</html>"
    assert response.headers["content-type"].startswith("text/html")
    assert response.headers["cache-control"] == "public, max-age=0"


def test_spa_root_document_at_slash_is_uncached(make_client, site: Path) -> None:
    (site / "index.html").write_text("<html>root</html>", encoding="utf-8")
    client = make_client(single_page_mode=True, cache_max_age=3_600_000)

    root = client.get("/")
    deep = client.get("/deep/link")

    assert root.text == deep.text == "<html>root</html>"
    assert root.headers["cache-control"] == "public, max-age=0"
    assert deep.headers["cache-control"] == "public, max-age=0"
    assert client.get("/styles.css").headers["cache-control"] == "public, max-age=3600"


def test_spa_fallback_with_zero_cache_sends_no_cache(make_client, site: Path) -> None:
    (site / "index.html").write_text("<html>root</html>", encoding="utf-8")
    response = make_client(single_page_mode=True, cache_max_age=0).get("/deep/link")
    assert response.status_code == 200
    assert response.headers["cache-control"] == "no-cache"


def test_spa_without_index_document_is_404(make_client) -> None:
    response = make_client(single_page_mode=True).get("/deep/link")
    assert response.status_code == 404


def test_spa_root_directory_without_index_falls_back_to_listing(make_client) -> None:
    response = make_client(single_page_mode=True, basename="/app").get("/")
    assert response.status_code == 200
    assert "Index of" in response.text


def test_cache_flag_sets_max_age(make_client) -> None:
    response = make_client(cache_max_age=60_000).get("/styles.css")
    assert response.headers["cache-control"] == "public, max-age=60"


def test_zero_cache_sets_no_cache_on_files_and_redirects(make_client) -> None:
    client = make_client(cache_max_age=0)
    assert client.get("/styles.css").headers["cache-control"] == "no-cache"
    redirect = client.get("/docs", follow_redirects=False)
    assert redirect.headers["cache-control"] == "no-cache"


def test_cors_headers_on_every_response(make_client) -> None:
    client = make_client(cors_enabled=True)
    for path in ("/styles.css", "/missing"):
        response = client.get(path)
        assert response.headers["access-control-allow-origin"] == "*"
        assert "Range" in response.headers["access-control-allow-headers"]


def test_no_cors_headers_by_default(make_client) -> None:
    assert "access-control-allow-origin" not in make_client().get("/styles.css").headers


def test_auth_rejects_missing_and_wrong_credentials(make_client) -> None:
    client = make_client(auth_enabled=True, auth_user="ada", auth_password="s3cret", cors_enabled=True)

    missing = client.get("/styles.css")
    assert missing.status_code == 401
    assert missing.text == "Access Denied"
    assert missing.headers["www-authenticate"] == 'Basic realm="User Visible Realm"'
    assert missing.headers["access-control-allow-origin"] == "*"

    wrong = client.get("/styles.css", headers=_basic("ada", "nope"))
    assert wrong.status_code == 401


def test_auth_allows_matching_credentials(make_client) -> None:
    client = make_client(auth_enabled=True, auth_user="ada", auth_password="s3cret")
    response = client.get("/styles.css", headers=_basic("ada", "s3cret"))
    assert response.status_code == 200


def test_head_request_has_no_body(make_client) -> None:
    response = make_client().head("/styles.css")
    assert response.status_code == 200
    assert response.content == b""


def test_conditional_request_returns_not_modified(make_client) -> None:
    client = make_client()
    etag = client.get("/styles.css").headers["etag"]
    response = client.get("/styles.css", headers={"If-None-Match": etag})
    assert response.status_code == 304
