[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "memstore"
version = "0.1.0"
description = "In-memory key-value and list store with TTL expiry, a JSON HTTP API and a client"
requires-python = ">=3.10"
dependencies = []
keywords = ["key-value", "in-memory", "cache", "ttl", "http", "json", "wsgi"]
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
    "Topic :: Database :: Database Engines/Servers",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
memstore-server = "memstore.server:main"

[tool.hatch.build.targets.wheel]
packages = ["memstore"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
