[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "jukebox"
version = "3.1.0"
description = "Manage replacement songs (NONGs) for level song IDs: local, hosted and index-provided songs stored as a JSON manifest."
requires-python = ">=3.10"
keywords = ["music", "songs", "nong", "manifest", "index", "downloads"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["jukebox"]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 88
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
