[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "rmexec"
version = "0.1.0"
description = "Query execution core for a small relational database: typed values, executors, external sorting, joins, aggregation and result printing"
requires-python = ">=3.10"
dependencies = []
keywords = ["database", "query execution", "executor", "merge join", "external sort", "aggregation"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Education",
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

[tool.hatch.build.targets.wheel]
packages = ["rmexec"]

[tool.pytest.ini_options]
addopts = "-ra"
