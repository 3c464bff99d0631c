[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "algolobby"
version = "0.1.0"
description = "Two-player asyncio lobby server, length-prefixed msgpack event protocol and a scrollable log-view model"
requires-python = ">=3.10"
keywords = ["game-server", "lobby", "asyncio", "msgpack", "protocol", "board-game"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Framework :: AsyncIO",
    "Intended Audience :: Developers",
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
    "msgpack>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "pytest-asyncio>=0.21",
]

[project.scripts]
algolobby-server = "algolobby.server:main"

[tool.hatch.build.targets.wheel]
packages = ["algolobby"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
