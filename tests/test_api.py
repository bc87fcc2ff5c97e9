# tests/test_api.py
"""
Contract tests for API responses.

The app runs with a FakeProber and an in-memory stand-in for the durable
adapter, so storage transitions and durable failures can be simulated.
"""

from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from forexhub.main import create_app
from forexhub.storage.errors import StoreUnavailableError
from forexhub.storage.refresh import STORAGE_MODE_HEADER
from forexhub.storage.selector import StorageMode


@pytest.fixture
def client(settings, selector):
    """Create test client (runs the app lifespan)."""
    with TestClient(create_app(settings=settings, selector=selector)) as test_client:
        yield test_client


def _publish_post(client, admin_headers, **overrides) -> dict:
    payload = {"title": "Trading the NFP Release", "body": "Wait for the spread to normalize.", "status": "published"}
    payload.update(overrides)
    response = client.post("/v1/admin/posts", json=payload, headers=admin_headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


class TestHealthEndpoints:
    """Test health check endpoints."""

    def test_health_durable(self, client):
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data == {"status": "ok", "connected": True, "storage_type": "durable", "can_persist": True}
        assert response.headers[STORAGE_MODE_HEADER] == "durable"

    def test_health_degraded_when_database_down(self, client, prober):
        prober.reachable = False

        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["storage_type"] == "volatile"
        assert data["can_persist"] is False

    def test_recovers_on_next_request(self, client, prober):
        prober.reachable = False
        client.get("/health")

        prober.reachable = True
        response = client.get("/health")

        assert response.json()["storage_type"] == "durable"
        assert response.headers[STORAGE_MODE_HEADER] == "durable"

    def test_admin_storage_status(self, client, admin_headers):
        response = client.get("/v1/admin/storage", headers=admin_headers)
        assert response.status_code == 200

        data = response.json()
        assert data["connected"] is True
        assert data["transitions"] == 1
        assert data["durable_configured"] is True

    def test_admin_force_reconcile(self, client, admin_headers, prober):
        prober.reachable = False

        response = client.post("/v1/admin/storage/reconcile", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["storage_type"] == "volatile"


class TestAdminAuth:
    """Admin endpoints fail closed."""

    def test_missing_key(self, client):
        response = client.post("/v1/admin/posts", json={"title": "x"})
        assert response.status_code == 401

    def test_wrong_key(self, client):
        response = client.get("/v1/admin/storage", headers={"X-API-Key": "nope"})
        assert response.status_code == 401

    def test_unconfigured_key_is_server_error(self, settings, selector):
        settings = settings.model_copy(update={"ADMIN_API_KEY": None})
        with TestClient(create_app(settings=settings, selector=selector)) as client:
            response = client.get("/v1/admin/storage", headers={"X-API-Key": "anything"})
        assert response.status_code == 500

    def test_bypass_outside_production(self, settings, selector):
        settings = settings.model_copy(update={"ADMIN_API_KEY": None, "BYPASS_AUTH_IN_NON_PROD": True})
        with TestClient(create_app(settings=settings, selector=selector)) as client:
            assert client.get("/v1/admin/storage").status_code == 200


class TestPostsEndpoint:
    """Public and admin post endpoints."""

    def test_create_and_read(self, client, admin_headers, durable):
        post = _publish_post(client, admin_headers, tags=["NFP", "News"])

        by_slug = client.get(f"/v1/posts/slug/{post['slug']}")
        assert by_slug.status_code == 200
        body = by_slug.json()
        assert body["data"]["id"] == post["id"]
        assert body["storage_type"] == "durable"
        assert body["persistent"] is True
        assert body["warning"] is None

    def test_drafts_hidden_from_public(self, client, admin_headers):
        draft = _publish_post(client, admin_headers, status="draft", title="Unfinished")

        assert client.get(f"/v1/posts/{draft['id']}").status_code == 404
        assert client.get("/v1/posts").json()["total"] == 0
        assert client.get("/v1/admin/posts", headers=admin_headers).json()["total"] == 1

    def test_draft_tags_not_counted(self, client, admin_headers):
        _publish_post(client, admin_headers, title="Gold outlook", tags=["gold"])
        _publish_post(client, admin_headers, title="Secret EA launch", status="draft", tags=["unannounced-ea"])

        assert client.get("/v1/posts/tags").json()["data"] == [{"tag": "gold", "count": 1}]

    def test_draft_subresources_hidden(self, client, admin_headers):
        draft = _publish_post(client, admin_headers, title="Secret EA launch", status="draft")
        client.put(f"/v1/admin/posts/{draft['id']}/seo", json={"meta_title": "Secret EA launch"}, headers=admin_headers)

        assert client.get(f"/v1/posts/{draft['id']}/seo").status_code == 404
        assert client.get(f"/v1/posts/{draft['id']}/comments").status_code == 404
        assert client.get(f"/v1/posts/{draft['id']}/related").status_code == 404
        assert client.post(f"/v1/posts/{draft['id']}/view").status_code == 404

        admin_view = client.get("/v1/admin/posts", params={"status": "draft"}, headers=admin_headers).json()
        assert admin_view["data"][0]["view_count"] == 0

    def test_published_subresources_visible(self, client, admin_headers):
        post = _publish_post(client, admin_headers)

        assert client.get(f"/v1/posts/{post['id']}/comments").status_code == 200
        assert client.get(f"/v1/posts/{post['id']}/related").json()["data"] == []

    def test_list_pagination_envelope(self, client, admin_headers):
        for i in range(3):
            _publish_post(client, admin_headers, title=f"Weekly outlook {i}")

        data = client.get("/v1/posts", params={"limit": 2, "page": 1}).json()

        assert data["total"] == 3
        assert data["total_pages"] == 2
        assert data["has_next_page"] is True
        assert len(data["data"]) == 2

    def test_invalid_sort_field_is_400(self, client):
        response = client.get("/v1/posts", params={"sort_by": "body"})
        assert response.status_code == 400
        assert response.json()["field"] == "sort_by"

    def test_duplicate_slug_is_400(self, client, admin_headers):
        _publish_post(client, admin_headers)
        response = client.post("/v1/admin/posts", json={"title": "Trading the NFP Release"}, headers=admin_headers)

        assert response.status_code == 400
        assert response.json()["field"] == "slug"

    def test_search_only_published(self, client, admin_headers):
        _publish_post(client, admin_headers, title="Gold rally")
        _publish_post(client, admin_headers, title="Gold draft", status="draft")

        data = client.get("/v1/posts/search", params={"q": "GOLD"}).json()

        assert data["total"] == 1
        assert data["data"][0]["title"] == "Gold rally"

    def test_tags_refresh_after_write(self, client, admin_headers):
        _publish_post(client, admin_headers, title="One", tags=["gold"])
        assert client.get("/v1/posts/tags").json()["data"] == [{"tag": "gold", "count": 1}]

        _publish_post(client, admin_headers, title="Two", tags=["gold"])
        assert client.get("/v1/posts/tags").json()["data"] == [{"tag": "gold", "count": 2}]

    def test_view_counter(self, client, admin_headers):
        post = _publish_post(client, admin_headers)

        client.post(f"/v1/posts/{post['id']}/view")
        response = client.post(f"/v1/posts/{post['id']}/view")

        assert response.json()["count"] == 2
        assert client.post("/v1/posts/missing/view").status_code == 404

    def test_status_transition_rejected(self, client, admin_headers):
        post = _publish_post(client, admin_headers)
        client.patch(f"/v1/admin/posts/{post['id']}", json={"status": "archived"}, headers=admin_headers)

        response = client.patch(f"/v1/admin/posts/{post['id']}", json={"status": "published"}, headers=admin_headers)

        assert response.status_code == 400

    def test_delete(self, client, admin_headers):
        post = _publish_post(client, admin_headers)

        assert client.delete(f"/v1/admin/posts/{post['id']}", headers=admin_headers).status_code == 204
        assert client.delete(f"/v1/admin/posts/{post['id']}", headers=admin_headers).status_code == 404

    def test_seo_upsert(self, client, admin_headers):
        post = _publish_post(client, admin_headers)
        assert client.get(f"/v1/posts/{post['id']}/seo").status_code == 404

        response = client.put(
            f"/v1/admin/posts/{post['id']}/seo",
            json={"meta_title": "NFP trading guide", "keywords": ["NFP"]},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert client.get(f"/v1/posts/{post['id']}/seo").json()["data"]["keywords"] == ["nfp"]


class TestCommentsEndpoint:
    """Comment submission and moderation."""

    def test_moderation_flow(self, client, admin_headers):
        post = _publish_post(client, admin_headers)
        submitted = client.post(
            "/v1/comments",
            json={"post_id": post["id"], "body": "Great read", "author_name": "Ana", "author_email": "ana@example.com"},
        )
        assert submitted.status_code == 201
        comment = submitted.json()["data"]
        assert comment["status"] == "pending"

        assert client.get(f"/v1/posts/{post['id']}/comments").json()["total"] == 0
        queue = client.get("/v1/admin/comments", params={"status": "pending"}, headers=admin_headers).json()
        assert [c["id"] for c in queue["data"]] == [comment["id"]]

        client.patch(f"/v1/admin/comments/{comment['id']}", json={"status": "approved"}, headers=admin_headers)
        assert client.get(f"/v1/posts/{post['id']}/comments").json()["total"] == 1

    def test_comment_on_unknown_post(self, client):
        response = client.post(
            "/v1/comments",
            json={"post_id": "missing", "body": "Hello", "author_name": "Ana", "author_email": "ana@example.com"},
        )
        assert response.status_code == 400
        assert response.json()["field"] == "post_id"

    def test_comment_on_draft_rejected(self, client, admin_headers):
        draft = _publish_post(client, admin_headers, title="Secret EA launch", status="draft")

        response = client.post(
            "/v1/comments",
            json={"post_id": draft["id"], "body": "First!", "author_name": "Ana", "author_email": "ana@example.com"},
        )

        assert response.status_code == 400
        assert response.json()["field"] == "post_id"
        queue = client.get("/v1/admin/comments", headers=admin_headers).json()
        assert queue["total"] == 0

    def test_user_id_not_accepted_from_readers(self, client, admin_headers):
        post = _publish_post(client, admin_headers)
        user = client.post(
            "/v1/users", json={"email": "ana@example.com", "username": "ana", "password": "long-enough-pw"}
        ).json()["data"]

        anonymous = client.post("/v1/comments", json={"post_id": post["id"], "body": "Hi", "user_id": user["id"]})
        assert anonymous.status_code == 400
        assert anonymous.json()["field"] == "author_name"

        named = client.post(
            "/v1/comments",
            json={
                "post_id": post["id"],
                "body": "Hi",
                "user_id": user["id"],
                "author_name": "Ana",
                "author_email": "ana@example.com",
            },
        )
        assert named.status_code == 201
        assert named.json()["data"]["user_id"] is None


class TestDownloadsEndpoint:
    """Download catalog and reviews."""

    def _create(self, client, admin_headers, **overrides) -> dict:
        payload = {"title": "Trend Master EA", "file_url": "ea/trend-master.ex5", "platform": "mt5"}
        payload.update(overrides)
        response = client.post("/v1/admin/downloads", json=payload, headers=admin_headers)
        assert response.status_code == 201, response.text
        return response.json()["data"]

    def test_reviews_update_rating(self, client, admin_headers):
        download = self._create(client, admin_headers)

        for rating in (5, 4):
            response = client.post(f"/v1/downloads/{download['id']}/reviews", json={"rating": rating})
            assert response.status_code == 201

        data = client.get(f"/v1/downloads/{download['id']}").json()["data"]
        assert data["rating"] == 4.5
        assert data["review_count"] == 2
        assert client.get(f"/v1/downloads/{download['id']}/reviews").json()["total"] == 2

    def test_rating_out_of_range_is_422(self, client, admin_headers):
        download = self._create(client, admin_headers)
        response = client.post(f"/v1/downloads/{download['id']}/reviews", json={"rating": 6})
        assert response.status_code == 422

    def test_review_user_id_ignored(self, client, admin_headers):
        download = self._create(client, admin_headers)
        user = client.post(
            "/v1/users", json={"email": "ana@example.com", "username": "ana", "password": "long-enough-pw"}
        ).json()["data"]

        response = client.post(
            f"/v1/downloads/{download['id']}/reviews", json={"rating": 5, "user_id": user["id"], "author_name": "Ana"}
        )

        assert response.status_code == 201
        assert response.json()["data"]["user_id"] is None
        assert response.json()["data"]["author_name"] == "Ana"

    def test_download_counter_and_featured(self, client, admin_headers):
        quiet = self._create(client, admin_headers, title="Quiet EA")
        busy = self._create(client, admin_headers, title="Busy EA")
        client.post(f"/v1/downloads/{busy['id']}/download")

        featured = client.get("/v1/downloads/featured", params={"limit": 2}).json()["data"]

        assert [d["id"] for d in featured] == [busy["id"], quiet["id"]]

    def test_platform_filter(self, client, admin_headers):
        self._create(client, admin_headers, title="MT4 tool", platform="mt4")
        self._create(client, admin_headers, title="MT5 tool", platform="mt5")

        data = client.get("/v1/downloads", params={"platform": "mt4"}).json()

        assert [d["title"] for d in data["data"]] == ["MT4 tool"]


class TestCategoriesEndpoint:
    def test_tree_and_restricted_delete(self, client, admin_headers):
        parent = client.post("/v1/admin/categories", json={"name": "Indicators"}, headers=admin_headers).json()["data"]
        client.post("/v1/admin/categories", json={"name": "Oscillators", "parent_id": parent["id"]}, headers=admin_headers)

        tree = client.get("/v1/categories/tree").json()["data"]
        assert tree[0]["name"] == "Indicators"
        assert tree[0]["children"][0]["name"] == "Oscillators"

        response = client.delete(f"/v1/admin/categories/{parent['id']}", headers=admin_headers)
        assert response.status_code == 400


class TestUsersEndpoint:
    """Registration and login never expose the password hash."""

    def test_register_and_login(self, client):
        registered = client.post(
            "/v1/users",
            json={"email": "Ana@Example.com", "username": "ana", "password": "long-enough-pw", "role": "admin"},
        )
        assert registered.status_code == 201
        user = registered.json()["data"]
        assert user["email"] == "ana@example.com"
        assert user["role"] == "viewer"
        assert "password_hash" not in user

        bad = client.post("/v1/auth/login", json={"email": "ana@example.com", "password": "wrong-password"})
        assert bad.status_code == 401

        good = client.post("/v1/auth/login", json={"email": "ana@example.com", "password": "long-enough-pw"})
        assert good.status_code == 200
        assert good.json()["data"]["last_login_at"] is not None

    def test_admin_list_hides_hash(self, client, admin_headers):
        client.post("/v1/users", json={"email": "bo@example.com", "username": "bo", "password": "long-enough-pw"})

        data = client.get("/v1/admin/users", headers=admin_headers).json()

        assert data["total"] == 1
        assert "password_hash" not in data["data"][0]


class TestAnalyticsEndpoint:
    """Events reported by the site and the admin aggregates over them."""

    def test_page_views_rank_popular_content(self, client, admin_headers):
        post = _publish_post(client, admin_headers)
        for _ in range(2):
            response = client.post("/v1/analytics/page-view", json={"page_url": "/blog/nfp", "post_id": post["id"]})
            assert response.status_code == 201
        assert response.json()["data"]["user_agent"] == "testclient"

        popular = client.get("/v1/admin/analytics/popular", headers=admin_headers).json()

        assert popular["data"] == [{"id": post["id"], "count": 2}]

    def test_events_in_range(self, client, admin_headers):
        client.post("/v1/analytics/search", json={"query": "gold EA", "results_count": 4})
        start = (datetime.now(UTC) - timedelta(minutes=5)).isoformat()
        end = (datetime.now(UTC) + timedelta(minutes=5)).isoformat()

        data = client.get("/v1/admin/analytics/events", params={"start": start, "end": end}, headers=admin_headers).json()
        inverted = client.get("/v1/admin/analytics/events", params={"start": end, "end": start}, headers=admin_headers)

        assert data["total"] == 1
        assert data["data"][0]["search_query"] == "gold EA"
        assert inverted.status_code == 400
        assert inverted.json()["field"] == "end"

    def test_aggregates_are_admin_only(self, client):
        assert client.get("/v1/admin/analytics/popular").status_code == 401


class TestNewsletterEndpoint:
    """Subscriptions never expose the confirmation token."""

    def test_subscribe_and_unsubscribe(self, client, admin_headers):
        subscribed = client.post("/v1/newsletter/subscribe", json={"email": "Pip@Example.com", "name": "Pip"})
        assert subscribed.status_code == 201
        assert subscribed.json()["data"]["email"] == "pip@example.com"
        assert "confirmation_token" not in subscribed.json()["data"]

        duplicate = client.post("/v1/newsletter/subscribe", json={"email": "pip@example.com"})
        assert duplicate.status_code == 400
        assert duplicate.json()["field"] == "email"

        assert client.post("/v1/newsletter/unsubscribe", json={"email": "pip@example.com"}).status_code == 204
        assert client.post("/v1/newsletter/unsubscribe", json={"email": "nobody@example.com"}).status_code == 404

        active = client.get("/v1/admin/newsletter", params={"active": "true"}, headers=admin_headers).json()
        everyone = client.get("/v1/admin/newsletter", headers=admin_headers).json()
        assert active["total"] == 0
        assert everyone["total"] == 1
        assert everyone["data"][0]["is_active"] is False

    def test_preferences_are_admin_only(self, client, admin_headers):
        client.post("/v1/newsletter/subscribe", json={"email": "pip@example.com"})
        payload = {"email": "pip@example.com", "preferences": {"frequency": "weekly"}}

        assert client.put("/v1/admin/newsletter/preferences", json=payload).status_code == 401
        response = client.put("/v1/admin/newsletter/preferences", json=payload, headers=admin_headers)
        unknown = client.put(
            "/v1/admin/newsletter/preferences",
            json={"email": "nobody@example.com", "preferences": {}},
            headers=admin_headers,
        )

        assert response.status_code == 200
        assert response.json()["data"]["preferences"] == {"frequency": "weekly"}
        assert unknown.status_code == 404


class TestDegradedMode:
    """Durable failures mid-request: reads fail open, writes return 503."""

    def test_volatile_responses_carry_warning(self, client, prober):
        prober.reachable = False

        body = client.get("/v1/posts").json()

        assert body["storage_type"] == "volatile"
        assert body["persistent"] is False
        assert body["degraded"] is False
        assert "temporary storage" in body["warning"]

    def test_read_falls_back_to_volatile(self, client, selector, durable, monkeypatch):
        async def unavailable(*args, **kwargs):
            raise StoreUnavailableError("server closed the connection unexpectedly")

        monkeypatch.setattr(durable.posts, "list", unavailable)

        response = client.get("/v1/posts")

        assert response.status_code == 200
        body = response.json()
        assert body["degraded"] is True
        assert body["storage_type"] == "volatile"
        assert body["data"] == []
        assert selector.is_stale is True

    def test_write_failure_is_503(self, client, selector, durable, monkeypatch, admin_headers):
        async def unavailable(*args, **kwargs):
            raise StoreUnavailableError("connection refused")

        monkeypatch.setattr(durable.posts, "create", unavailable)

        response = client.post("/v1/admin/posts", json={"title": "Lost write"}, headers=admin_headers)

        assert response.status_code == 503
        assert response.headers["Retry-After"] == "5"
        assert selector.is_stale is True
        # the write was not replayed on the volatile store
        assert selector.volatile.store.count("posts") == 0

    def test_writes_land_in_volatile_store_while_degraded(self, client, prober, admin_headers, selector):
        prober.reachable = False

        response = client.post("/v1/admin/posts", json={"title": "Written while down"}, headers=admin_headers)

        assert response.status_code == 201
        assert response.json()["storage_type"] == "volatile"
        assert selector.mode is StorageMode.VOLATILE
        assert selector.volatile.store.count("posts") == 1
