[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "vsphere-steps"
version = "0.1.0"
description = "Build steps and configuration validation for producing vSphere virtual machine images"
requires-python = ">=3.10"
dependencies = [
    "psutil",
]
keywords = ["vsphere", "vcenter", "image", "build", "virtual-machine", "ovf"]
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
    "Topic :: System :: Installation/Setup",
    "Typing :: Typed",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["vsphere_steps"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"
