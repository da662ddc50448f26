[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "bmvm"
version = "0.1.0"
description = "A 64-bit stack-based virtual machine: emulator, output checker and disassembler for BM bytecode files"
requires-python = ">=3.10"
dependencies = []
keywords = ["virtual-machine", "bytecode", "emulator", "disassembler", "stack-machine"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: System :: Emulators",
    "Topic :: Software Development :: Interpreters",
]

[project.optional-dependencies]
test = ["pytest"]

[project.scripts]
bme = "bmvm.bme:main"
bmr = "bmvm.bmr:main"
debasm = "bmvm.debasm:main"

[tool.hatch.build.targets.wheel]
packages = ["bmvm"]

[tool.pytest.ini_options]
addopts = "-ra"
