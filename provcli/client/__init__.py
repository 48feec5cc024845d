"""Talking to the Providence server: upload, progress and response messages."""
