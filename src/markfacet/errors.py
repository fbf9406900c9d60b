"""Exception classes for the bookmark search service."""


class MarkfacetError(Exception):
    """Base exception for all markfacet errors."""
    pass


class InputValidationError(MarkfacetError):
    """Raised when a search payload cannot be read as filters at all."""
    pass


class SourceUnavailableError(MarkfacetError):
    """Raised when a record source cannot supply bookmarks."""
    pass


class InternalComputationError(MarkfacetError):
    """Raised when filtering, scoring, sorting or faceting fails unexpectedly."""
    pass
