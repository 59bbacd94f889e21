"""Instruction builders for native and SPL programs."""
