[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ujds"
version = "0.1.0"
description = "Schema-validated, versioned JSON records in named indices: validation, RPC services and client"
requires-python = ">=3.10"
keywords = ["json", "json-schema", "storage", "rpc", "wsgi", "versioning"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Database :: Database Engines/Servers",
    "Topic :: Internet :: WWW/HTTP :: WSGI :: Application",
]
dependencies = [
    "jsonschema",
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["ujds"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
