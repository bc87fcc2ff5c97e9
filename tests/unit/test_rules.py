"""
Unit tests for the shared entity rules and text helpers.
"""

from datetime import datetime, timedelta, timezone

import pytest

from forexhub.schemas.content import PostStatus
from forexhub.schemas.engagement import AnalyticsEventFilters, SubscriberCreate, SubscriberUpdate
from forexhub.storage.errors import ValidationError
from forexhub.storage.pagination import Page, PaginationOptions, SortOrder, sort_records, total_pages
from forexhub.storage.rules import (
    apply_subscriber_update,
    check_post_transition,
    filter_conditions,
    mean_rating,
    new_subscriber_record,
    plan_delete,
    record_matches,
)
from forexhub.storage.text import (
    build_search_text,
    escape_like,
    hash_password,
    is_valid_email,
    is_valid_slug,
    matches_search,
    normalize_search_text,
    normalize_tags,
    slugify,
    verify_password,
)


class TestText:
    """Normalization shared by both adapters."""

    def test_normalize_search_text(self):
        assert normalize_search_text("  Crème   BRÛLÉE ") == "creme brulee"
        assert normalize_search_text(None) == ""
        assert normalize_search_text("tab\tand\nnewline") == "tab and newline"

    def test_search_never_spans_fields(self):
        blob = build_search_text("Gold", "Breakout")
        assert matches_search(blob, "gold")
        assert matches_search(blob, "BREAKOUT")
        assert not matches_search(blob, "gold breakout")

    def test_blank_query_matches_nothing(self):
        assert not matches_search(build_search_text("anything"), "   ")

    def test_slugify(self):
        assert slugify("Trend Master EA v2.5") == "trend-master-ea-v2-5"
        assert slugify("  Café -- Crème  ") == "cafe-creme"
        assert slugify("!!!") == ""

    def test_slug_validation(self):
        assert is_valid_slug("gold-breakout-2")
        assert not is_valid_slug("Gold")
        assert not is_valid_slug("double--hyphen")
        assert not is_valid_slug("-leading")

    def test_normalize_tags_dedupes_in_order(self):
        assert normalize_tags(["EUR/USD", "eur-usd", "Gold", "  "]) == ["eur-usd", "gold"]
        assert normalize_tags(None) == []

    def test_escape_like(self):
        assert escape_like("100%_off\\") == "100\\%\\_off\\\\"

    def test_email_validation(self):
        assert is_valid_email("trader@example.com")
        assert not is_valid_email("trader@localhost")
        assert not is_valid_email("no at sign")

    def test_password_hash_round_trip(self):
        hashed = hash_password("s3cret-pass")

        assert verify_password("s3cret-pass", hashed)
        assert not verify_password("wrong", hashed)
        assert hashed != hash_password("s3cret-pass")

    def test_verify_rejects_malformed_hash(self):
        assert not verify_password("anything", "plaintext")
        assert not verify_password("anything", "md5$1$abc$def")


class TestRules:
    """Rules evaluated identically by both adapters."""

    @pytest.mark.parametrize(
        "current,target,allowed",
        [
            (PostStatus.DRAFT, PostStatus.PUBLISHED, True),
            (PostStatus.DRAFT, PostStatus.ARCHIVED, False),
            (PostStatus.PUBLISHED, PostStatus.DRAFT, True),
            (PostStatus.PUBLISHED, PostStatus.ARCHIVED, True),
            (PostStatus.ARCHIVED, PostStatus.DRAFT, False),
            (PostStatus.ARCHIVED, PostStatus.ARCHIVED, True),
        ],
    )
    def test_post_transitions(self, current, target, allowed):
        if allowed:
            check_post_transition(current, target)
        else:
            with pytest.raises(ValidationError):
                check_post_transition(current, target)

    def test_mean_rating_rounds_half_up(self):
        assert mean_rating([]) == 0.0
        assert mean_rating([5, 4, 4]) == 4.33
        assert mean_rating([3] * 7 + [4]) == 3.13
        assert mean_rating([1, 2]) == 1.5
        assert mean_rating([2] * 33 + [3] * 7) == 2.18

    def test_plan_delete_orders_children_first(self):
        records = {
            "posts": {"p1": {"id": "p1"}},
            "comments": {
                "c1": {"id": "c1", "post_id": "p1", "parent_id": None},
                "c2": {"id": "c2", "post_id": "p1", "parent_id": "c1"},
            },
            "seo_meta": {},
        }

        class Source:
            def get(self, collection, record_id):
                return records.get(collection, {}).get(record_id)

            def find_one(self, collection, field, value):
                return next(iter(self.find_all(collection, field, value)), None)

            def find_all(self, collection, field, value):
                return [r for r in records.get(collection, {}).values() if r.get(field) == value]

        plan = plan_delete("posts", "p1", Source())

        assert plan.deletes[-1] == ("posts", "p1")
        assert plan.deletes.index(("comments", "c2")) < plan.deletes.index(("comments", "c1"))
        assert plan.nullify == []

    def test_time_bounds_are_inclusive_and_naive(self):
        since = datetime(2026, 3, 1, 14, 0, tzinfo=timezone(timedelta(hours=2)))
        until = datetime(2026, 3, 1, 13, 0)
        conditions = filter_conditions(AnalyticsEventFilters(since=since, until=until))

        assert [(c.field, c.op, c.value) for c in conditions] == [
            ("created_at", "gte", datetime(2026, 3, 1, 12, 0)),
            ("created_at", "lte", datetime(2026, 3, 1, 13, 0)),
        ]
        assert record_matches({"created_at": datetime(2026, 3, 1, 12, 0)}, conditions)
        assert record_matches({"created_at": datetime(2026, 3, 1, 13, 0)}, conditions)
        assert not record_matches({"created_at": datetime(2026, 3, 1, 13, 0, 1)}, conditions)

    def test_subscriber_reactivation_starts_fresh(self):
        record = new_subscriber_record(SubscriberCreate(email="Pip@Example.com"))
        lapsed = apply_subscriber_update(record, SubscriberUpdate(is_active=False))
        renewed = apply_subscriber_update(lapsed, SubscriberUpdate(is_active=True))

        assert record["email"] == "pip@example.com"
        assert lapsed["unsubscribed_at"] is not None
        assert lapsed["subscribed_at"] == record["subscribed_at"]
        assert renewed["unsubscribed_at"] is None
        assert renewed["subscribed_at"] >= record["subscribed_at"]
        assert renewed["confirmation_token"] != record["confirmation_token"]

    def test_subscriber_is_active_cannot_be_cleared(self):
        record = new_subscriber_record(SubscriberCreate(email="pip@example.com"))

        with pytest.raises(ValidationError) as exc_info:
            apply_subscriber_update(record, SubscriberUpdate(is_active=None))
        assert exc_info.value.field == "is_active"


class TestPagination:
    def test_total_pages(self):
        assert total_pages(0, 10) == 0
        assert total_pages(10, 10) == 1
        assert total_pages(11, 10) == 2

    def test_page_build(self):
        page = Page.build(["a"], 3, PaginationOptions(page=3, limit=1))
        assert page.has_next_page is False
        assert page.has_previous_page is True

    def test_sort_records_nulls_first_and_id_tiebreak(self):
        records = [
            {"id": "b", "score": 1},
            {"id": "a", "score": 1},
            {"id": "c", "score": None},
        ]

        asc = sort_records(records, "score", SortOrder.ASC)
        desc = sort_records(records, "score", SortOrder.DESC)

        assert [r["id"] for r in asc] == ["c", "a", "b"]
        assert [r["id"] for r in desc] == ["a", "b", "c"]
