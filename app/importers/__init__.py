"""Vendor spreadsheet importers and the imports/ folder watcher."""

from app.importers.spreadsheets import SPREADSHEET_EXTENSIONS, detect_source, import_file

__all__ = ["SPREADSHEET_EXTENSIONS", "detect_source", "import_file"]
