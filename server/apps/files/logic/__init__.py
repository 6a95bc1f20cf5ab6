"""Business logic layer for files app.

This package contains all business logic for file operations:
- Display name collision resolution
- Upload, list, describe, preview, download and delete
- Reconciliation of records with what is on disk

All business logic should be implemented here, separate from
views (HTTP layer) and infrastructure (disk and image processing).
"""
