"""Infrastructure layer for drive app.

This package contains integrations with external systems:
- Storage backend for entry content (S3/MinIO)
- Metadata extraction (MIME type, checksum) and name validation

Keep infrastructure concerns separate from business logic.
"""
