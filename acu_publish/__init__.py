"""Acumatica customization publisher driven by GitHub release tags."""

__version__ = "1.0.0"
