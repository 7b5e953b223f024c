[build-system]
requires = ["setuptools>=68", "wheel"]
build-backend = "setuptools.build_meta"

[project]
name = "treasurenet"
version = "0.1.0"
description = "Two-player treasure hunt over raw Ethernet frames, with a stop-and-wait Kermit-style file transfer"
requires-python = ">=3.10"
dependencies = []
keywords = [
    "game",
    "treasure hunt",
    "raw socket",
    "ethernet",
    "kermit",
    "stop-and-wait",
    "checksum",
    "curses",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console :: Curses",
    "Intended Audience :: Education",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
treasurenet-client = "treasurenet.client:main"
treasurenet-server = "treasurenet.server:main"

[tool.setuptools.packages.find]
include = ["treasurenet*"]

[tool.pytest.ini_options]
addopts = "-ra"
