[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "poulet"
version = "0.1.0"
description = "A chess engine driven by small neural networks trained through self-play and a genetic algorithm"
requires-python = ">=3.10"
keywords = ["chess", "neural network", "genetic algorithm", "self-play", "neuroevolution"]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Games/Entertainment :: Board Games",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]
dependencies = [
    "numpy",
]

[project.optional-dependencies]
test = [
    "pytest",
    "numpy",
]

[project.scripts]
poulet-train = "poulet.train:main"

[tool.hatch.build.targets.wheel]
packages = ["poulet"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
