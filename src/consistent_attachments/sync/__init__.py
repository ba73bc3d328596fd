"""Filesystem watching for consistent-attachments."""
