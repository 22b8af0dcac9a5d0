"""Typed random secret generation."""

from .generator import generate_secret, random_string, uuid4_string
from .types import Secret, SecretType

__all__ = ["Secret", "SecretType", "generate_secret", "random_string", "uuid4_string"]
