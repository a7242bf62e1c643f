"""Generation providers for grounded answers."""

from citerag.generators.openai_generator import OpenAIGenerator

__all__ = ["OpenAIGenerator"]
