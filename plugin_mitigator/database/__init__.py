"""Persisted option storage for the plugin mitigator."""

from .models import Base, Option
from .repository import OptionStore, Repository

__all__ = [
    "Base",
    "Option",
    "OptionStore",
    "Repository",
]
