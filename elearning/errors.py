"""Errors raised by the data model.

Every error derives from DataModelError. Callers catching the broader
classes (ValidationError, NotFoundError) also catch the narrower ones.
"""


class DataModelError(Exception):
    """Base class for data model errors."""


class ValidationError(DataModelError):
    """A value is missing, malformed, out of range or breaks an invariant."""

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = list(errors or [])


class UniquenessConflict(ValidationError):
    """A unique field already holds this value in another record."""

    def __init__(self, entity, field=None, value=None):
        if field is None:
            # reported by the store's unique constraint; the field is not known here
            message = f"{entity} violates a unique constraint"
        else:
            message = f"{entity}.{field} must be unique, {value!r} is taken"
        super().__init__(
            message,
            errors=[{"loc": (field,) if field else (), "msg": "value already exists", "type": "unique"}],
        )
        self.entity = entity
        self.field = field
        self.value = value


class NotFoundError(DataModelError):
    """An identifier does not resolve to a live record."""

    def __init__(self, entity, identifier):
        super().__init__(f"{entity} not found: {identifier}")
        self.entity = entity
        self.identifier = identifier


class MissingReferenceError(NotFoundError, ValidationError):
    """A foreign key on a write points at a record that does not exist."""

    def __init__(self, entity, identifier, field):
        DataModelError.__init__(self, f"{field} references missing {entity}: {identifier}")
        self.entity = entity
        self.identifier = identifier
        self.field = field
        self.errors = [{"loc": (field,), "msg": f"{entity} does not exist", "type": "missing_reference"}]


class ReferentialIntegrityError(DataModelError):
    """A delete is blocked by live records that depend on the target."""

    def __init__(self, entity, identifier, dependents):
        # the store can refuse a delete without saying which records block it
        listed = ", ".join(f"{count} {name}" for name, count in sorted(dependents.items())) or "unknown dependents"
        super().__init__(f"Cannot delete {entity} {identifier}: referenced by {listed}")
        self.entity = entity
        self.identifier = identifier
        self.dependents = dict(dependents)


class StoreUnavailableError(DataModelError):
    """The backing store could not be reached or timed out.

    Safe to retry for reads; writes need deduplication first.
    """
