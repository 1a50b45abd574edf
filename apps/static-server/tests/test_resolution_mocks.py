from __future__ import annotations

from pathlib import Path


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")


def test_mock_served_for_missing_path(make_client, mock_dir: Path) -> None:
    _write(mock_dir / "items" / "42.json", '{"id": 42}')
    client = make_client(mocks={r"/api/items/(\d+)": "/items/$1.json"})

    response = client.get("/api/items/42")

    assert response.status_code == 200
    assert response.json() == {"id": 42}
    assert response.headers["content-type"].startswith("application/json")


def test_existing_file_wins_over_mock(make_client, mock_dir: Path) -> None:
    _write(mock_dir / "styles.json", '"mocked"')
    client = make_client(mocks={"/styles": "/styles.json"})
    assert client.get("/styles.css").text == "body {}"


def test_unmatched_mock_falls_back_to_not_found(make_client) -> None:
    client = make_client(mocks={r"/api/(.*)": "/api/$1.json"})
    response = client.get("/api/unknown")
    assert response.status_code == 404
    assert response.text == "Not Found"


def test_last_rule_decides_response(make_client, mock_dir: Path) -> None:
    _write(mock_dir / "x" / "1", "x-one")
    _write(mock_dir / "y" / "1", "y-one")
    client = make_client(mocks={"/a/(.*)": "/x/$1", "/a/(.+)": "/y/$1"})
    assert client.get("/a/1").text == "y-one"


def test_status_override_through_query(make_client, mock_dir: Path) -> None:
    _write(mock_dir / "login.json", '{"error": "nope"}')
    client = make_client(mocks={"/login": "/login.json"})
    response = client.get("/login?__status__=401")
    assert response.status_code == 401
    assert response.json() == {"error": "nope"}


def test_mock_runs_for_ignored_paths(make_client, mock_dir: Path) -> None:
    _write(mock_dir / "git.json", '"mocked git"')
    client = make_client(mocks={r"\.git/": "/git.json"})
    response = client.get("/.git/HEAD")
    assert response.status_code == 200
    assert response.json() == "mocked git"


def test_spa_mode_prefers_mock_over_index(make_client, site: Path, mock_dir: Path) -> None:
    (site / "index.html").write_text("<html>shell</html>", encoding="utf-8")
    _write(mock_dir / "me.py", "def provide(request):\n    return {'user': 'ada'}\n")
    client = make_client(single_page_mode=True, mocks={"/api/me": "/me.py"})

    assert client.get("/api/me").json() == {"user": "ada"}
    shell = client.get("/settings")
    assert shell.text == "<html>shell</html>"
    assert shell.headers["cache-control"] == "public, max-age=0"


def test_failing_provider_answers_bad_gateway(make_client, site: Path, mock_dir: Path) -> None:
    (site / "index.html").write_text("<html>shell</html>", encoding="utf-8")
    _write(mock_dir / "boom.py", "def provide(request):\n    raise ValueError('bad mock')\n")

    for single in (False, True):
        client = make_client(single_page_mode=single, mocks={"/boom": "/boom.py"})
        response = client.get("/boom")
        assert response.status_code == 502
        assert "mock provider failed" in response.text


def test_mock_responses_carry_cors_headers(make_client, mock_dir: Path) -> None:
    _write(mock_dir / "ping.txt", "pong")
    client = make_client(cors_enabled=True, mocks={"/ping": "/ping.txt"})
    response = client.post("/ping")
    assert response.text == "pong"
    assert response.headers["access-control-allow-origin"] == "*"
