"""Local Library Catalog - Core Application Package

This package contains the catalog application modules including:
- API endpoints (api.py)
- Catalog handlers for authors, books, genres and copies (library.py)
- CLI interface (main.py)
- Entity records (models.py)
- Database layer and entity store (database.py)
- Reference resolution, validation, deletion guard and view models
"""

__version__ = "1.0.0"
