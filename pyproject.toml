[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "metricsapi"
version = "0.1.0"
description = "Resource metrics API storage for nodes and pods: selectors, quantities, tables, freshness histograms and server options"
requires-python = ">=3.10"
dependencies = []
keywords = ["metrics", "kubernetes", "nodes", "pods", "monitoring", "resource-metrics"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Monitoring",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["metricsapi"]

[tool.hatch.build.targets.sdist]
include = ["metricsapi", "tests", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
