"""ASGI middleware that serves a Swagger UI page and the OpenAPI spec it documents."""

from __future__ import annotations

import html
import json
import os
import posixpath
from dataclasses import dataclass, replace
from typing import Any, Callable

import yaml
from starlette.requests import Request
from starlette.responses import HTMLResponse, PlainTextResponse, Response

DEFAULT_BASE_PATH = "/"
DEFAULT_FILE_PATH = "./swagger.json"
DEFAULT_PATH = "docs"
DEFAULT_TITLE = "Fiber API documentation"
DEFAULT_CACHE_AGE = 3600

# Where the Swagger UI scripts and styles are loaded from.
UI_ASSETS_URL = "https://unpkg.com/swagger-ui-dist"


class SwaggerSpecError(ValueError):
    """Raised when the spec is missing, unreadable or neither JSON nor YAML."""


@dataclass
class Config:
    """Settings for the Swagger middleware; empty fields receive defaults."""

    # Requests for which this returns True bypass the middleware.
    next: Callable[[Request], bool] | None = None
    # Prefix for both the UI page and the spec URL.
    base_path: str = DEFAULT_BASE_PATH
    # Spec file to read; also names the URL the spec is served under.
    file_path: str = DEFAULT_FILE_PATH
    # Spec content; when given, file_path is not read.
    file_content: bytes | None = None
    # Path of the UI page below base_path.
    path: str = DEFAULT_PATH
    # Title of the UI page.
    title: str = DEFAULT_TITLE
    # max-age of the Cache-Control header sent with the spec, in seconds.
    cache_age: int = DEFAULT_CACHE_AGE


def _resolve_config(config: Config | None) -> Config:
    if config is None:
        return Config()
    return replace(
        config,
        base_path=config.base_path or DEFAULT_BASE_PATH,
        file_path=config.file_path or DEFAULT_FILE_PATH,
        path=config.path or DEFAULT_PATH,
        title=config.title or DEFAULT_TITLE,
        cache_age=config.cache_age or DEFAULT_CACHE_AGE,
    )


def _join(*parts: str) -> str:
    """Join URL path pieces and clean the result."""
    joined = "/".join(part for part in parts if part)
    if not joined:
        return ""
    cleaned = posixpath.normpath(joined)
    if cleaned.startswith("//"):
        cleaned = "/" + cleaned.lstrip("/")
    return cleaned


def _read_spec(file_path: str) -> bytes:
    if not os.path.exists(file_path):
        raise SwaggerSpecError(f"{file_path} file does not exist")
    try:
        with open(file_path, "rb") as handle:
            return handle.read()
    except OSError as exc:
        raise SwaggerSpecError(
            f"Failed to read provided Swagger file ({file_path}): {exc}"
        ) from exc


def _is_json_object(raw: bytes) -> bool:
    try:
        return isinstance(json.loads(raw), dict)
    except (ValueError, UnicodeDecodeError):
        return False


def _is_yaml_mapping(raw: bytes) -> bool:
    try:
        document = yaml.safe_load(raw)
    except yaml.YAMLError:
        return False
    return document is None or isinstance(document, dict)


def render_ui(title: str, spec_url: str) -> str:
    """Return the HTML page that loads Swagger UI for *spec_url*."""
    script_url = json.dumps(spec_url).replace("</", "<\\/")
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <title>{html.escape(title)}</title>
  <link rel="stylesheet" type="text/css" href="{UI_ASSETS_URL}/swagger-ui.css">
  <style>
    html {{ box-sizing: border-box; overflow-y: scroll; }}
    *, *:before, *:after {{ box-sizing: inherit; }}
    body {{ margin: 0; background: #fafafa; }}
  </style>
</head>
<body>
  <div id="swagger-ui"></div>
  <script src="{UI_ASSETS_URL}/swagger-ui-bundle.js"></script>
  <script src="{UI_ASSETS_URL}/swagger-ui-standalone-preset.js"></script>
  <script>
    window.onload = function () {{
      window.ui = SwaggerUIBundle({{
        url: {script_url},
        dom_id: "#swagger-ui",
        deepLinking: true,
        presets: [SwaggerUIBundle.presets.apis, SwaggerUIStandalonePreset],
        plugins: [SwaggerUIBundle.plugins.DownloadUrl],
        layout: "StandaloneLayout"
      }});
    }};
  </script>
</body>
</html>
"""


def new(config: Config | None = None) -> Callable[[Any], Callable[..., Any]]:
    """Return a middleware factory taking the wrapped ASGI ``app``.

    Raises SwaggerSpecError at once if the spec cannot be loaded or parsed.
    """
    cfg = _resolve_config(config)

    raw_spec = cfg.file_content or b""
    if not raw_spec:
        raw_spec = _read_spec(cfg.file_path)
    raw_spec = bytes(raw_spec)

    if not _is_json_object(raw_spec) and not _is_yaml_mapping(raw_spec):
        if cfg.file_content:
            raise SwaggerSpecError(
                f"Invalid Swagger spec: {raw_spec.decode('utf-8', 'replace')}"
            )
        raise SwaggerSpecError(f"Invalid Swagger spec file: {cfg.file_path}")

    spec_url = _join(cfg.base_path, cfg.file_path)
    ui_path = _join(cfg.base_path, cfg.path)
    page = render_ui(cfg.title, spec_url)
    cache_control = f"public, max-age={cfg.cache_age}"

    def spec_response(path: str) -> Response:
        if path.endswith((".yaml", ".yml")):
            media_type = "application/yaml"
        elif path.endswith(".json"):
            media_type = "application/json"
        else:
            return PlainTextResponse("404 page not found", status_code=404)
        return Response(
            raw_spec, media_type=media_type, headers={"Cache-Control": cache_control}
        )

    def factory(app: Any) -> Callable[..., Any]:
        async def middleware(scope, receive, send) -> None:
            if scope["type"] != "http":
                await app(scope, receive, send)
                return
            request = Request(scope, receive)
            if cfg.next is not None and cfg.next(request):
                await app(scope, receive, send)
                return

            path = request.url.path
            if path == ui_path:
                response: Response = HTMLResponse(page)
            elif path == spec_url:
                response = spec_response(path)
            else:
                await app(scope, receive, send)
                return
            await response(scope, receive, send)

        return middleware

    return factory