"""Curio terminal client."""
