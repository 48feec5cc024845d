"""Fetching build contexts that do not live on the local filesystem."""
