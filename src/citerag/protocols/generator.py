"""Protocol for text generation providers."""

from typing import Protocol, runtime_checkable


@runtime_checkable
class GenerationProvider(Protocol):
    """Protocol for answer generation backends.

    Implementations raise ``ProviderError`` when the backend fails or
    does not answer within its timeout.
    """

    @property
    def model_name(self) -> str:
        """Return identifier for the model used."""
        ...

    def generate(self, prompt: str) -> str:
        """Return the model's free-text completion for ``prompt``."""
        ...
