[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "fusedtiles"
version = "0.1.0"
description = "Fused tile partitioning of CNN feature maps, with reuse of overlapped data between adjacent tiles"
requires-python = ">=3.10"
dependencies = [
    "numpy",
]
keywords = [
    "cnn",
    "inference",
    "tiling",
    "partitioning",
    "edge computing",
    "distributed inference",
    "feature maps",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: Science/Research",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering :: Artificial Intelligence",
]

[project.optional-dependencies]
test = [
    "pytest",
    "hypothesis",
]

[tool.hatch.build.targets.wheel]
packages = ["fusedtiles"]

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
