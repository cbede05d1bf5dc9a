"""Ranks the paths from a project root to its vulnerable dependencies."""
