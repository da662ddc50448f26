"""Emulator, output checker and disassembler for the BM stack virtual machine."""

__version__ = "0.1.0"