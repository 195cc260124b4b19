"""Archival of processed source files."""

from semantic_archive.providers.archive.zip_archiver import ZipArchiver

__all__ = ["ZipArchiver"]
