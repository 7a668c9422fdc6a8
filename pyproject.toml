[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "microsvc"
version = "0.1.0"
description = "Small web-facing services: a JSON record query language, currency, market and geocoding lookups, instant answers, e-mail sending and OpenAPI tooling"
requires-python = ">=3.10"
keywords = [
    "microservices",
    "openapi",
    "typescript",
    "currency",
    "forex",
    "crypto",
    "geocoding",
    "query-language",
]
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
    "Topic :: Internet :: WWW/HTTP",
]
dependencies = [
    "requests>=2.25",
    "semver>=3.0",
]

[project.optional-dependencies]
test = [
    "pytest>=7.0",
    "responses>=0.23",
]

[project.scripts]
microsvc-clients = "microsvc.tsgen:main"
microsvc-publish = "microsvc.publisher:main"

[tool.hatch.build.targets.wheel]
packages = ["microsvc"]

[tool.pytest.ini_options]
addopts = "-ra"
testpaths = ["tests"]

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
