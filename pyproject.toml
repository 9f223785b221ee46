[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "ordersvc"
version = "1.0.0"
description = "Order lookup service: stores orders in SQLite and serves them over HTTP with an LRU cache in front of the database."
requires-python = ">=3.10"
keywords = ["orders", "http", "service", "cache", "lru", "consumer", "flask", "sqlite"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Web Environment",
    "Framework :: Flask",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
]
dependencies = [
    "flask>=2.2",
    "werkzeug>=2.2",
    "python-dotenv>=1.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
]

[project.scripts]
ordersvc = "ordersvc.app:main"

[tool.hatch.build.targets.wheel]
packages = ["ordersvc"]

[tool.hatch.build.targets.sdist]
include = ["ordersvc", "tests", "pyproject.toml", "README.md"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
disallow_untyped_defs = true

[tool.coverage.run]
source = ["ordersvc"]
branch = true

[tool.coverage.report]
show_missing = true
