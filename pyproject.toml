[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "whereaboutskit"
version = "0.1.0"
description = "Helpers for end-to-end testing of a cluster-wide IP address management plugin: manifest builders, pool consistency checks and polling waiters."
requires-python = ">=3.10"
dependencies = []
keywords = ["ipam", "kubernetes", "e2e", "testing", "ip-pool", "cni"]
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
    "Topic :: Software Development :: Testing",
    "Topic :: System :: Networking",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["whereaboutskit"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
