"""Final assembly of the harmonized record table."""

from .assembler import AssemblyResult, AssemblyStep, assemble, output_columns

__all__ = ["AssemblyResult", "AssemblyStep", "assemble", "output_columns"]
