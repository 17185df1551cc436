# carfinder/errors.py
"""Exceptions raised by feed parsing and ingestion."""


class IngestError(ValueError):
    """Base class for errors that reject a dealer feed."""


class PayloadError(IngestError):
    """The feed body could not be parsed or held no usable listings."""


class OwnershipConflictError(IngestError):
    """A feed record targets a listing that belongs to another dealer."""

    def __init__(self, source_id, owner_dealer_id, requesting_dealer_id):
        self.source_id = source_id
        self.owner_dealer_id = owner_dealer_id
        self.requesting_dealer_id = requesting_dealer_id
        super().__init__("Listing belongs to a different dealer.")


class DuplicateDealerError(ValueError):
    """A dealer with the same name or email is already registered."""
