"""Business logic layer for drive app.

This package contains all business logic for the drive:
- Quota ledger and the per-account lock
- Path resolution and tree invariants
- Entry store (creation, rename, move, state transitions)
- Trash lifecycle (trash, restore, purge, expiry)
- File operations facade used by client-facing layers

All business logic should be implemented here, separate from
models (data layer) and infrastructure (external systems).

Reference: https://github.com/dry-python
for decoupling business logic from Django views.
"""
