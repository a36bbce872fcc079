"""Core parsing helpers."""

from vibesec.core.parser import EnvFile, EnvParser, EnvVar

__all__ = ["EnvFile", "EnvParser", "EnvVar"]
