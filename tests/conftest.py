import pytest

from docrepo.repository import Repository
from docrepo.stores.memory import InMemoryDocumentStore

from tests.entities import Article, titled


@pytest.fixture
def store() -> InMemoryDocumentStore:
    return InMemoryDocumentStore("articles")


@pytest.fixture
def repo(store: InMemoryDocumentStore) -> Repository[Article]:
    return Repository(Article, store, validate_create=titled)
