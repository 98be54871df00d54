"""Document store backends: MongoDB via Motor, and an in-memory store for tests."""

from .base import Document, DocumentStore, Filter, Sort
from .memory import InMemoryDocumentStore, matches
from .motor import MotorDocumentStore

__all__ = [
    "Document",
    "DocumentStore",
    "Filter",
    "Sort",
    "InMemoryDocumentStore",
    "MotorDocumentStore",
    "matches",
]
