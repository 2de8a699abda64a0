"""Engagement project list and detail."""
