"""Submission lifecycle."""
