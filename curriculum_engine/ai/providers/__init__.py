"""Generative text provider implementations."""
