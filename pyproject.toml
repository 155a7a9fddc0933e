[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "lightmusic"
version = "1.0.0"
description = "Media library scanning, tag parsing and login throttling for a self-hosted music server"
requires-python = ">=3.10"
dependencies = []
keywords = ["music", "media-library", "scanner", "tags", "metadata", "throttling"]
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
    "Topic :: Multimedia :: Sound/Audio",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
lightmusic = "lightmusic.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["lightmusic"]

[tool.hatch.build.targets.sdist]
include = ["lightmusic", "tests", "README.md"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"
