"""Reporters for repository state: Rich terminal tables and JSON."""
