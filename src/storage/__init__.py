"""Local state persistence."""

from src.storage.json_file import JsonFile

__all__ = ["JsonFile"]
