"""Layered storage device tree and the external tools behind it."""
