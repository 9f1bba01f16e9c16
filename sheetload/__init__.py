"""sheetload: configuration-driven spreadsheet -> PostgreSQL importer."""

__version__ = "0.1.0"
