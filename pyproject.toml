[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "parkwatch"
version = "1.0.0"
description = "Find parking spaces and parked cars in overhead parking-lot images, and score the results against ground truth."
requires-python = ">=3.10"
keywords = [
    "parking",
    "car detection",
    "computer vision",
    "bounding boxes",
    "intersection over union",
    "mean average precision",
]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Image Recognition",
]
dependencies = [
    "numpy",
    "scipy",
    "pillow",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
parkwatch = "parkwatch.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["parkwatch"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
ignore_missing_imports = true
