[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bitcaskkv"
version = "0.1.0"
description = "A Bitcask-style log-structured key/value storage engine with Redis-like data structures"
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
]
dependencies = [
    "filelock",
    "sortedcontainers",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
bitcaskkv-redis = "bitcaskkv.redisds.server:main"
bitcaskkv-http = "bitcaskkv.httpserver:main"

[tool.hatch.build.targets.wheel]
packages = ["bitcaskkv"]

[tool.pytest.ini_options]
addopts = "-ra"
