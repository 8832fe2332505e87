"""
Question generator clients.

This package provides the base class and request type shared by all
generator API clients.
"""
from .base_client import BaseQuestionGenerator, GeneratorRequest

__all__ = ["BaseQuestionGenerator", "GeneratorRequest"]
