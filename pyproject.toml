[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "capn"
version = "0.1.0"
description = "Cluster API infrastructure types for LXC/Incus, cloud-init parsing, image-builder options and kini docker-shim helpers"
requires-python = ">=3.10"
dependencies = [
    "pyyaml",
]
keywords = [
    "cluster-api",
    "kubernetes",
    "lxc",
    "incus",
    "cloud-init",
    "kind",
    "kubeadm",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Developers",
    "Intended Audience :: System Administrators",
    "Operating System :: POSIX :: Linux",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Clustering",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["capn"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
check_untyped_defs = true
