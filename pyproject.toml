[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "businessclub"
version = "0.1.0"
description = "Game engine and WebSocket server for The Business Club, a multiplayer stock-trading board game."
requires-python = ">=3.10"
keywords = ["game", "board game", "stock market", "multiplayer", "websocket", "server"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
]
dependencies = [
    "websockets",
]

[project.optional-dependencies]
test = [
    "pytest",
    "pytest-asyncio",
]

[project.scripts]
bc-server = "businessclub.server:main"

[tool.hatch.build.targets.wheel]
packages = ["businessclub"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
