[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "nomadmcp"
version = "0.1.4"
description = "Model Context Protocol server exposing HashiCorp Nomad operations as tools"
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = ["nomad", "mcp", "model-context-protocol", "orchestration", "cluster"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Environment :: Console",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Systems Administration",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[project.scripts]
nomadmcp = "nomadmcp.app:main"

[tool.hatch.build.targets.wheel]
packages = ["nomadmcp"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
