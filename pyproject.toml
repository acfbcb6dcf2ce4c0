[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lwskit"
version = "0.1.0"
description = "Helpers for leader/worker pod groups: naming, readiness checks, TPU environment wiring, headless services and template revisions."
requires-python = ">=3.10"
dependencies = []
keywords = ["leaderworkerset", "kubernetes", "statefulset", "tpu", "revision", "pods"]
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
    "Topic :: System :: Distributed Computing",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["lwskit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
