"""Shared models and the dashboard composition root."""
