from .client import DEFAULT_OPTIONS, OllamaGenerator

__all__ = ["DEFAULT_OPTIONS", "OllamaGenerator"]
