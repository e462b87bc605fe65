[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "primedist"
version = "0.1.0"
description = "Distributed prime number search over TCP: a master splits a range between slaves that search it in worker threads"
requires-python = ">=3.10"
dependencies = []
keywords = ["primes", "distributed", "master-slave", "tcp", "number-theory"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Education",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Distributed Computing",
    "Topic :: Scientific/Engineering :: Mathematics",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
primedist = "primedist.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["primedist"]

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
