"""Logging, configuration persistence and threading helpers."""
