[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "contribware"
version = "0.1.0"
description = "Starlette middleware for PASETO authentication, WebSocket handling, Socket.IO-style events and Swagger UI"
requires-python = ">=3.10"
keywords = [
    "asgi",
    "starlette",
    "middleware",
    "paseto",
    "websocket",
    "socketio",
    "swagger",
    "openapi",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Middleware",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Security :: Cryptography",
    "Typing :: Typed",
]
dependencies = [
    "starlette",
    "pynacl",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
    "httpx",
]

[tool.hatch.build.targets.wheel]
packages = ["contribware"]

[tool.hatch.build.targets.sdist]
include = ["contribware", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
