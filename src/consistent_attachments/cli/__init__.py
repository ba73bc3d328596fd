"""CLI tools for consistent-attachments."""
