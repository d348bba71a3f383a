"""
Exception and warning types shared by the bus terminal services.

Expected outcomes such as "not found", "seat already taken" or "document
already claimed" are reported through return values. Only storage failures
and broken references surface as exceptions.
"""


class PersistenceError(Exception):
    """Storage communication failure. Always carries the underlying cause."""
    pass


class DataIntegrityError(PersistenceError):
    """A stored reference cannot be resolved, or a conflict has no matching row."""
    pass


class DataQualityWarning(UserWarning):
    """A stored value was unrecognized and a fallback was applied."""
    pass
