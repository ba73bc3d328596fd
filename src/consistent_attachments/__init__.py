"""consistent-attachments - keep links and attachments of a notes vault consistent across renames and deletes"""

__version__ = "0.1.0"
