"""Tests for the fluent query builder and terminal operations."""

import asyncio
from datetime import timedelta

import pytest
from pymongo import ASCENDING, DESCENDING

from docrepo.config import RepositoryConfig, Settings
from docrepo.exceptions import InvalidArgumentError, NotFoundError
from docrepo.models import FilterCriteria, OrderByDate
from docrepo.predicates import field
from docrepo.repository import Repository

from tests.entities import BASE_TIME, Article, article_at


def seed(repo: Repository[Article], articles: list[Article]) -> list[Article]:
    for article in articles:
        repo.add(article)
    asyncio.run(repo.save_changes())
    return articles


def ids_of(articles: list[Article]) -> list[str]:
    return [a.id for a in articles]


def test_empty_query_matches_everything(repo: Repository[Article]) -> None:
    assert repo.query().filter_document == {}


def test_builders_return_new_queries(repo: Repository[Article]) -> None:
    base = repo.where(field("score") > 1)
    narrowed = base.where(field("score") < 5)

    assert len(base.predicates) == 1
    assert len(narrowed.predicates) == 2
    assert narrowed.filter_document == {
        "$and": [{"score": {"$gt": 1}}, {"score": {"$lt": 5}}]
    }


def test_id_field_translates_to_stored_key(repo: Repository[Article]) -> None:
    query = repo.has_ids(["a", "b"]).order_by("id")

    assert query.filter_document == {"_id": {"$in": ["a", "b"]}}
    assert query.sort.to_mongo() == ("_id", ASCENDING)


def test_raw_filter_dicts_are_accepted(repo: Repository[Article]) -> None:
    articles = seed(repo, [Article(title="a", score=1), Article(title="b", score=7)])

    found = asyncio.run(repo.where({"$or": [{"score": 1}, {"title": "zzz"}]}).to_list())

    assert ids_of(found) == [articles[0].id]


def test_where_is_conjunctive(repo: Repository[Article]) -> None:
    articles = seed(
        repo,
        [
            Article(title="a", score=1, tags=["x"]),
            Article(title="b", score=5, tags=["x"]),
            Article(title="c", score=5, tags=["y"]),
        ],
    )

    found = asyncio.run(repo.where(field("score") == 5).where(field("tags") == "x").to_list())

    assert ids_of(found) == [articles[1].id]


def test_order_by_replaces_previous_sort(repo: Repository[Article]) -> None:
    query = repo.order_by("score").order_by_descending("title")

    assert query.sort.to_mongo() == ("title", DESCENDING)


def test_order_by_date_wins_over_earlier_sort(repo: Repository[Article]) -> None:
    articles = seed(
        repo,
        [
            article_at(0, title="first", score=3),
            article_at(10, title="second", score=1),
            article_at(20, title="third", score=2),
        ],
    )

    found = asyncio.run(repo.order_by("score").order_by_date(OrderByDate.DESC).to_list())

    assert ids_of(found) == [articles[2].id, articles[1].id, articles[0].id]


def test_order_by_field_ascending_and_descending(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="b", score=2), Article(title="c", score=3), Article(title="a", score=1)])

    ascending = asyncio.run(repo.order_by(field("score")).to_list())
    descending = asyncio.run(repo.order_by_descending("score").to_list())

    assert [a.score for a in ascending] == [1, 2, 3]
    assert [a.score for a in descending] == [3, 2, 1]


def test_date_range_builders(repo: Repository[Article]) -> None:
    articles = seed(repo, [article_at(m, title=f"m{m}") for m in (0, 10, 20, 30)])

    found = asyncio.run(
        repo.from_date(BASE_TIME + timedelta(minutes=10))
        .to_date(BASE_TIME + timedelta(minutes=20))
        .order_by_date(OrderByDate.ASC)
        .to_list()
    )

    assert ids_of(found) == [articles[1].id, articles[2].id]


def test_modified_date_builders(repo: Repository[Article]) -> None:
    articles = seed(repo, [article_at(m, title=f"m{m}") for m in (0, 10, 20)])

    found = asyncio.run(
        repo.from_modified_date(BASE_TIME + timedelta(minutes=5))
        .to_modified_date(BASE_TIME + timedelta(minutes=10))
        .to_list()
    )

    assert ids_of(found) == [articles[1].id]


def test_naive_date_bounds_are_treated_as_utc(repo: Repository[Article]) -> None:
    articles = seed(repo, [article_at(0, title="early"), article_at(60, title="late")])
    naive_cutoff = (BASE_TIME + timedelta(minutes=30)).replace(tzinfo=None)

    found = asyncio.run(repo.from_date(naive_cutoff).to_list())

    assert ids_of(found) == [articles[1].id]


def test_has_ids_then_has_not_ids(repo: Repository[Article]) -> None:
    x, y, z = seed(repo, [Article(title="x"), Article(title="y"), Article(title="z")])

    found = asyncio.run(repo.has_ids({x.id, y.id}).has_not_ids({y.id}).to_list())

    assert ids_of(found) == [x.id]


def test_filter_applies_every_criterion(repo: Repository[Article]) -> None:
    articles = seed(repo, [article_at(m, title=f"m{m}") for m in (0, 10, 20, 30, 40)])
    criteria = FilterCriteria(
        created_date_from=BASE_TIME + timedelta(minutes=10),
        created_date_to=BASE_TIME + timedelta(minutes=40),
        exclude={articles[3].id},
        order_by_date=OrderByDate.DESC,
    )

    found = asyncio.run(repo.order_by("title").filter(criteria).to_list())

    assert ids_of(found) == [articles[4].id, articles[2].id, articles[1].id]


def test_filter_with_ids_and_modified_range(repo: Repository[Article]) -> None:
    articles = seed(repo, [article_at(m, title=f"m{m}") for m in (0, 10, 20)])
    criteria = FilterCriteria(
        ids={articles[0].id, articles[2].id},
        modified_date_from=BASE_TIME + timedelta(minutes=5),
        modified_date_to=BASE_TIME + timedelta(minutes=25),
    )

    found = asyncio.run(repo.filter(criteria).to_list())

    assert ids_of(found) == [articles[2].id]


def test_filter_none_is_noop(repo: Repository[Article]) -> None:
    query = repo.query()

    assert repo.filter(None).filter_document == query.filter_document
    assert repo.filter(FilterCriteria()).sort is None


def test_any_and_first_on_empty_collection(repo: Repository[Article]) -> None:
    assert asyncio.run(repo.any()) is False
    assert asyncio.run(repo.first_or_default()) is None
    with pytest.raises(NotFoundError):
        asyncio.run(repo.first())


def test_any_with_predicate(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="a", score=1)])

    assert asyncio.run(repo.any()) is True
    assert asyncio.run(repo.any(field("score") == 1)) is True
    assert asyncio.run(repo.any(field("score") == 2)) is False


def test_any_predicate_narrows_existing_query(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="a", score=1), Article(title="b", score=2)])
    query = repo.where(field("title") == "a")

    assert asyncio.run(query.any(field("score") == 2)) is False
    assert asyncio.run(query.any(field("score") == 1)) is True


def test_count_with_and_without_predicate(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="a", score=1), Article(title="b", score=2), Article(title="c", score=2)])

    assert asyncio.run(repo.count()) == 3
    assert asyncio.run(repo.count(field("score") == 2)) == 2


def test_terminal_operations_reuse_query_state(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="a", score=1), Article(title="b", score=2), Article(title="c", score=3)])
    query = repo.where(field("score") >= 2).order_by_descending("score")

    assert asyncio.run(query.count()) == 2
    assert asyncio.run(query.first()).title == "c"
    assert [a.title for a in asyncio.run(query.to_list())] == ["c", "b"]
    # A predicate passed to a terminal call does not stick to the query
    assert asyncio.run(query.count(field("score") == 3)) == 1
    assert asyncio.run(query.count()) == 2


def test_first_respects_sort(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="b", score=2), Article(title="a", score=1)])

    assert asyncio.run(repo.first()).title == "b"
    assert asyncio.run(repo.order_by("score").first()).title == "a"
    assert asyncio.run(repo.first(field("score") > 1)).title == "b"


def test_first_not_found_names_entity(repo: Repository[Article]) -> None:
    with pytest.raises(NotFoundError) as exc_info:
        asyncio.run(repo.first(field("title") == "missing"))

    assert exc_info.value.entity_name == "Article"
    assert exc_info.value.operation == "first"


def test_paginate_first_and_last_page(repo: Repository[Article]) -> None:
    seed(repo, [article_at(m, title=f"m{m}") for m in range(25)])
    query = repo.order_by_date(OrderByDate.ASC)

    first_page = asyncio.run(query.paginate(page_size=10, page_number=1))
    last_page = asyncio.run(query.paginate(page_size=10, page_number=3))

    assert len(first_page.items) == 10
    assert first_page.has_next_page is True
    assert first_page.total_count == 25
    assert [a.title for a in first_page.items][:2] == ["m0", "m1"]
    assert len(last_page.items) == 5
    assert last_page.has_next_page is False
    assert last_page.items[0].title == "m20"


def test_paginate_uses_floor_division_for_next_page(repo: Repository[Article]) -> None:
    seed(repo, [Article(title=f"a{i}") for i in range(25)])

    second_page = asyncio.run(repo.paginate(page_size=10, page_number=2))

    # 25 // 10 == 2, which is not greater than page 2
    assert len(second_page.items) == 10
    assert second_page.has_next_page is False


def test_paginate_past_the_end(repo: Repository[Article]) -> None:
    seed(repo, [Article(title="a")])

    page = asyncio.run(repo.paginate(page_size=10, page_number=4))

    assert page.items == []
    assert page.has_next_page is False


@pytest.mark.parametrize("page_size,page_number", [(0, 1), (-5, 1), (10, 0)])
def test_paginate_rejects_non_positive_arguments(
    repo: Repository[Article], page_size: int, page_number: int
) -> None:
    with pytest.raises(InvalidArgumentError):
        asyncio.run(repo.paginate(page_size=page_size, page_number=page_number))


def test_paginate_defaults_to_configured_page_size(
    repo: Repository[Article], monkeypatch: pytest.MonkeyPatch
) -> None:
    settings = Settings(repository=RepositoryConfig(default_page_size=2))
    monkeypatch.setattr("docrepo.query.get_settings", lambda: settings)
    seed(repo, [article_at(m, title=f"m{m}") for m in range(5)])

    page = asyncio.run(repo.order_by_date(OrderByDate.ASC).paginate())

    assert page.page_size == 2
    assert [a.title for a in page.items] == ["m0", "m1"]
    assert page.has_next_page is True
