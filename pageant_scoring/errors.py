from __future__ import annotations


class ScoringError(Exception):
    """Base class for every error the scoring service reports to callers."""


class ValidationError(ScoringError):
    """Submission rejected before anything was written."""


class InvalidCategoryError(ScoringError):
    def __init__(self, category: object):
        self.category = category
        super().__init__(f"Invalid category: {category!r}")


class MalformedRowError(ScoringError):
    """A stored row failed structural checks. Raised per row, caught by readers."""


class StorageError(ScoringError):
    """Backend unreachable or a read/write failed."""
