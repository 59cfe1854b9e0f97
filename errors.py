"""
Exceptions raised by the row store, object store and lock token adapters.

The registration service turns these into 500 results; business outcomes are
never raised.
"""


class RepositoryError(Exception):
    """Row store read or write failed."""


class LockTokenError(Exception):
    """Lock token could not be created."""


class StorageError(Exception):
    """Object store request failed."""

    DUPLICATE_CODES = {"PreconditionFailed", "Duplicate", "409", "412", "ConditionalRequestConflict"}
    POLICY_CODES = {"AccessDenied", "Forbidden", "403", "Unauthorized", "InvalidAccessKeyId"}
    NOT_FOUND_CODES = {"NoSuchKey", "NoSuchBucket", "NotFound", "404"}

    def __init__(self, message, code=None):
        super().__init__(message)
        self.message = message
        self.code = code

    @property
    def is_duplicate(self):
        if self.code in self.DUPLICATE_CODES:
            return True
        return "already exists" in (self.message or "").lower()

    @property
    def is_policy_violation(self):
        if self.code in self.POLICY_CODES:
            return True
        return "row-level security policy" in (self.message or "").lower()

    @property
    def is_not_found(self):
        return self.code in self.NOT_FOUND_CODES
