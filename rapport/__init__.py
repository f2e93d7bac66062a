"""Rapport: conversational tool-use assistant for a personal CRM."""

__version__ = "0.1.0"
