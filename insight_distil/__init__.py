"""Insight Distiller: staged streaming reflection over free-form text."""

__version__ = "0.1.0"
