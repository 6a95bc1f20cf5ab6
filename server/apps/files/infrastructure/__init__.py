"""Infrastructure layer for files app.

This package contains integrations with external systems:
- Filesystem storage backend for payloads and thumbnails
- JSON document store for metadata records
- Metadata extraction (MIME sniffing, storage keys)
- Thumbnail derivation with Pillow

Keep infrastructure concerns separate from business logic.
"""
