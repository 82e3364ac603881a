[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bsserver"
version = "0.1.0"
description = "A small multi-threaded TCP game server with a room, wandering monsters and a binary packet protocol"
requires-python = ">=3.10"
dependencies = []
keywords = ["game server", "tcp", "rpg", "networking", "packets"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: No Input/Output (Daemon)",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Role-Playing",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bsserver = "bsserver.game_service:main"

[tool.hatch.build.targets.wheel]
packages = ["bsserver"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
