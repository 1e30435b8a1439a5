"""Filesystem, logging and output helpers."""
