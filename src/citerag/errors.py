"""Exception taxonomy for the retrieval and grounding pipeline."""


class CiteRagError(Exception):
    """Base class for all pipeline errors."""


class InputError(CiteRagError):
    """A request field is missing or malformed."""


class NotFoundError(CiteRagError):
    """The referenced document is unknown or not ready for questions."""


class DocumentStateError(CiteRagError):
    """A document lifecycle transition was refused."""


class ProviderError(CiteRagError):
    """An embedding or generation call failed or timed out."""


class FusionError(CiteRagError):
    """Rank fusion was given degenerate input."""


class QueryCancelledError(CiteRagError):
    """The caller abandoned the query before it completed."""
