[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "cassdriver"
version = "0.1.0"
description = "Schema metadata, type parsing, ring tracking, host selection and retry policies for a Cassandra client"
requires-python = ">=3.10"
dependencies = []
keywords = ["cassandra", "cql", "database", "schema", "load-balancing", "retry"]
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
    "Topic :: Database :: Front-Ends",
    "Topic :: Software Development :: Libraries :: Python Modules",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["cassdriver"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
