[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "caskdb"
version = "0.1.0"
description = "A Bitcask-style log-structured key/value storage engine with Redis-like data structures, a RESP server and an HTTP front end"
requires-python = ">=3.10"
keywords = ["bitcask", "key-value", "storage-engine", "database", "log-structured", "redis"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Typing :: Typed",
]
dependencies = [
    "sortedcontainers",
    "filelock",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
caskdb-redis = "caskdb.redis.server:main"
caskdb-http = "caskdb.http_server:main"

[tool.hatch.build.targets.wheel]
packages = ["caskdb"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
