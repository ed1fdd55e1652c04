import json

import pytest
from starlette.applications import Starlette
from starlette.responses import PlainTextResponse
from starlette.routing import Route
from starlette.testclient import TestClient

from contribware.swagger import Config, SwaggerSpecError, new, render_ui

SWAGGER_JSON = json.dumps(
    {
        "swagger": "2.0",
        "info": {"title": "Sample API", "version": "1.0.0"},
        "paths": {"/tasks": {"get": {"responses": {"200": {"description": "ok"}}}}},
    }
).encode()

SWAGGER_YAML = b"""swagger: "2.0"
info:
  title: Sample API
  version: 1.0.0
paths:
  /tasks:
    get:
      responses:
        "200":
          description: ok
"""


async def _success(request):
    return PlainTextResponse("success")


def _inner(routes=()):
    return Starlette(routes=list(routes))


def _client(*configs, routes=()):
    app = _inner(routes)
    for cfg in configs:
        app = new(cfg)(app)
    return TestClient(app)


@pytest.fixture
def spec_dir(tmp_path, monkeypatch):
    (tmp_path / "swagger.json").write_bytes(SWAGGER_JSON)
    (tmp_path / "swagger.yaml").write_bytes(SWAGGER_YAML)
    monkeypatch.chdir(tmp_path)
    return tmp_path


def _statuses(client, *paths):
    return [client.get(p).status_code for p in paths]


@pytest.mark.parametrize(
    "cfg, ui, spec",
    [
        (Config(path="custompath"), "/custompath", "/swagger.json"),
        (Config(base_path="/api/v1"), "/api/v1/docs", "/api/v1/swagger.json"),
        (Config(base_path="/", file_path="swagger.json"), "/docs", "/swagger.json"),
        (
            Config(base_path="/", file_path="swagger.json", path="swagger"),
            "/swagger",
            "/swagger.json",
        ),
        (Config(base_path="/", file_path="./swagger.yaml"), "/docs", "/swagger.yaml"),
        (
            Config(base_path="/", file_path="swagger.yaml", path="swagger"),
            "/swagger",
            "/swagger.yaml",
        ),
        (Config(), "/docs", "/swagger.json"),
        (None, "/docs", "/swagger.json"),
    ],
)
def test_endpoints_from_file(spec_dir, cfg, ui, spec):
    client = _client(cfg)
    assert _statuses(client, ui, spec, "/notfound") == [200, 200, 404]


@pytest.mark.parametrize(
    "cfg, ui, spec",
    [
        (
            Config(path="custompath", file_content=SWAGGER_JSON, file_path="doesnotexist-swagger.json"),
            "/custompath",
            "/doesnotexist-swagger.json",
        ),
        (
            Config(base_path="/api/v1", file_content=SWAGGER_JSON, file_path="doesnotexist-swagger.json"),
            "/api/v1/docs",
            "/api/v1/doesnotexist-swagger.json",
        ),
        (
            Config(base_path="/", file_path="doesnotexist-swagger.json", file_content=SWAGGER_JSON),
            "/docs",
            "/doesnotexist-swagger.json",
        ),
        (
            Config(
                base_path="/",
                file_path="doesnotexist-swagger.json",
                path="swagger",
                file_content=SWAGGER_JSON,
            ),
            "/swagger",
            "/doesnotexist-swagger.json",
        ),
        (
            Config(base_path="/", file_path="./doesnotexist-swagger.yaml", file_content=SWAGGER_YAML),
            "/docs",
            "/doesnotexist-swagger.yaml",
        ),
        (
            Config(
                base_path="/",
                file_path="doesnotexist-swagger.yaml",
                path="swagger",
                file_content=SWAGGER_YAML,
            ),
            "/swagger",
            "/doesnotexist-swagger.yaml",
        ),
        (
            Config(file_content=SWAGGER_JSON, file_path="doesnotexist-swagger.json"),
            "/docs",
            "/doesnotexist-swagger.json",
        ),
    ],
)
def test_endpoints_from_content(tmp_path, monkeypatch, cfg, ui, spec):
    monkeypatch.chdir(tmp_path)
    client = _client(cfg)
    assert _statuses(client, ui, spec, "/notfound") == [200, 200, 404]


@pytest.mark.parametrize("file_path", ["./docs/swagger.json", "./docs/swagger_missing.json"])
def test_missing_file_raises(tmp_path, monkeypatch, file_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SwaggerSpecError, match="file does not exist"):
        new(Config(file_path=file_path))


def test_invalid_content_raises(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SwaggerSpecError, match="Invalid Swagger spec: {invalid"):
        new(Config(file_content=b"{invalid"))


def test_invalid_file_raises(spec_dir):
    (spec_dir / "broken.json").write_bytes(b"just some text")
    with pytest.raises(SwaggerSpecError, match="Invalid Swagger spec file: broken.json"):
        new(Config(file_path="broken.json"))


def test_multiple_instances(spec_dir):
    client = _client(Config(base_path="/api/v1"), Config(base_path="/api/v2"))
    assert _statuses(
        client,
        "/api/v1/docs",
        "/api/v1/swagger.json",
        "/api/v2/docs",
        "/api/v2/swagger.json",
        "/notfound",
    ) == [200, 200, 200, 200, 404]


def test_multiple_instances_from_content(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    client = _client(
        Config(base_path="/api/v1", file_content=SWAGGER_JSON, file_path="doesnotexist-swagger.json"),
        Config(base_path="/api/v2", file_content=SWAGGER_JSON, file_path="doesnotexist-swagger.json"),
    )
    assert _statuses(
        client,
        "/api/v1/docs",
        "/api/v1/doesnotexist-swagger.json",
        "/api/v2/docs",
        "/api/v2/doesnotexist-swagger.json",
        "/notfound",
    ) == [200, 200, 200, 200, 404]


@pytest.mark.parametrize(
    "cfg, spec",
    [
        (Config(base_path="/api/v1"), "/api/v1/swagger.json"),
        (
            Config(base_path="/api/v1", file_content=SWAGGER_JSON, file_path="doesnotexist-swagger.json"),
            "/api/v1/doesnotexist-swagger.json",
        ),
    ],
)
def test_custom_routes_still_work(spec_dir, cfg, spec):
    routes = [Route("/api/v1/tasks", _success), Route("/api/v1", _success)]
    client = _client(cfg, routes=routes)
    assert _statuses(client, "/api/v1/docs", spec, "/notfound") == [200, 200, 404]
    for path in ("/api/v1/tasks", "/api/v1", "/api/v1/"):
        response = client.get(path)
        assert response.status_code == 200
        assert response.text == "success"


def test_json_spec_headers_and_body(spec_dir):
    response = _client(Config()).get("/swagger.json")
    assert response.headers["content-type"] == "application/json"
    assert response.headers["cache-control"] == "public, max-age=3600"
    assert response.content == SWAGGER_JSON


def test_yaml_spec_headers_and_custom_cache_age(spec_dir):
    response = _client(Config(file_path="swagger.yaml", cache_age=60)).get("/swagger.yaml")
    assert response.headers["content-type"] == "application/yaml"
    assert response.headers["cache-control"] == "public, max-age=60"
    assert response.content == SWAGGER_YAML


def test_spec_without_known_extension_is_not_found(spec_dir):
    (spec_dir / "spec.txt").write_bytes(SWAGGER_JSON)
    client = _client(Config(file_path="spec.txt"))
    assert _statuses(client, "/docs", "/spec.txt") == [200, 404]


def test_ui_page_references_spec_and_title(spec_dir):
    response = _client(Config(base_path="/api/v1", title="My API")).get("/api/v1/docs")
    assert response.headers["content-type"].startswith("text/html")
    assert "<title>My API</title>" in response.text
    assert '"/api/v1/swagger.json"' in response.text


def test_next_skips_middleware(spec_dir):
    client = _client(Config(next=lambda request: True))
    assert _statuses(client, "/docs", "/swagger.json") == [404, 404]


def test_render_ui_escapes_title_and_url():
    page = render_ui("<API>", "/a</script>.json")
    assert "<title>&lt;API&gt;</title>" in page
    assert "/a</script>.json" not in page
    assert '"/a<\\/script>.json"' in page