[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "kingfisher"
version = "1.19.0"
description = "Building blocks for secret scanning: content inspection, Git URLs, commit graph walking, repository listing and command-line options."
requires-python = ">=3.10"
dependencies = [
    "requests",
]
keywords = [
    "secrets",
    "secret-scanning",
    "git",
    "security",
    "github",
    "gitlab",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Security",
    "Topic :: Software Development :: Version Control :: Git",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["kingfisher"]

[tool.hatch.build.targets.sdist]
include = [
    "kingfisher",
    "tests",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
warn_redundant_casts = true
