[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "renet"
version = "0.9.1"
description = "Server/client message-based network protocol for multiplayer games, with reliable and unreliable channels"
requires-python = ">=3.10"
keywords = ["gamedev", "networking", "multiplayer", "protocol", "channels"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Networking",
    "Topic :: Games/Entertainment",
]
dependencies = []

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["renet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
