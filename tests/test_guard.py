"""
Tests for the route guard.

Core principle: one classification per path, one decision per
(classification, authenticated), and anything unexpected fails closed.
"""

import pytest

from projecthub.auth.guard import (
    GuardAction,
    GuardDecision,
    RouteClass,
    RoutePolicy,
    needs_session,
)


@pytest.fixture
def policy():
    return RoutePolicy()


# =============================================================================
# Classification
# =============================================================================


class TestClassify:
    @pytest.mark.parametrize("path,expected", [
        ("/login", RouteClass.AUTH_ONLY),
        ("/register", RouteClass.AUTH_ONLY),
        ("/", RouteClass.PUBLIC),
        ("/health", RouteClass.PUBLIC),
        ("/api/auth/login", RouteClass.PUBLIC),
        ("/api/auth/register", RouteClass.PUBLIC),
        ("/projects", RouteClass.PROTECTED),
        ("/projects/new", RouteClass.PROTECTED),
        ("/projects/acme/settings", RouteClass.PROTECTED),
        ("/templates", RouteClass.PROTECTED),
        ("/settings", RouteClass.PROTECTED),
        ("/api/projects", RouteClass.API),
        ("/api/auth/me", RouteClass.API),
        ("/api", RouteClass.API),
        ("/about", RouteClass.UNCLASSIFIED),
        ("/static/app.js", RouteClass.UNCLASSIFIED),
    ])
    def test_buckets(self, policy, path, expected):
        assert policy.classify(path) == expected

    def test_prefix_matches_on_segment_boundary(self, policy):
        assert policy.classify("/projectsfoo") == RouteClass.UNCLASSIFIED
        assert policy.classify("/settings-help") == RouteClass.UNCLASSIFIED

    def test_root_redirect_policy(self):
        policy = RoutePolicy(root_is_public=False)
        assert policy.classify("/") == RouteClass.ROOT

    def test_classification_is_deterministic(self, policy):
        for path in ["/", "/login", "/projects/x", "/api/projects", "/other"]:
            assert policy.classify(path) == policy.classify(path)

    def test_public_and_unclassified_skip_session(self):
        assert not needs_session(RouteClass.PUBLIC)
        assert not needs_session(RouteClass.UNCLASSIFIED)
        assert needs_session(RouteClass.PROTECTED)
        assert needs_session(RouteClass.API)
        assert needs_session(RouteClass.AUTH_ONLY)


# =============================================================================
# Decisions
# =============================================================================


class TestDecide:
    def test_auth_only(self, policy):
        assert policy.decide(RouteClass.AUTH_ONLY, True) == GuardDecision.redirect("/projects")
        assert policy.decide(RouteClass.AUTH_ONLY, False).action is GuardAction.PASS

    def test_root(self, policy):
        assert policy.decide(RouteClass.ROOT, True).location == "/projects"
        assert policy.decide(RouteClass.ROOT, False).location == "/login"

    def test_protected(self, policy):
        assert policy.decide(RouteClass.PROTECTED, True).action is GuardAction.PASS
        decision = policy.decide(RouteClass.PROTECTED, False)
        assert decision.action is GuardAction.REDIRECT
        assert decision.location == "/login"
        assert decision.status_code == 307

    def test_api(self, policy):
        assert policy.decide(RouteClass.API, True).action is GuardAction.PASS
        decision = policy.decide(RouteClass.API, False)
        assert decision.action is GuardAction.REJECT
        assert decision.status_code == 401

    @pytest.mark.parametrize("route_class", [RouteClass.PUBLIC, RouteClass.UNCLASSIFIED])
    def test_always_pass(self, policy, route_class):
        assert policy.decide(route_class, True).action is GuardAction.PASS
        assert policy.decide(route_class, False).action is GuardAction.PASS

    def test_decision_is_pure(self, policy):
        for route_class in RouteClass:
            for authenticated in (True, False):
                assert policy.decide(route_class, authenticated) == policy.decide(
                    route_class, authenticated
                )


# =============================================================================
# Middleware
# =============================================================================


class TestMiddleware:
    def test_protected_page_without_session_redirects(self, client):
        response = client.get("/projects")
        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_protected_page_with_session_passes(self, client, provider):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        response = client.get("/projects")
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]

    def test_login_page_with_session_redirects_to_landing(self, client, provider):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        response = client.get("/login")
        assert response.status_code == 307
        assert response.headers["location"] == "/projects"

    def test_login_page_without_session_passes(self, client):
        assert client.get("/login").status_code == 200

    def test_api_without_session_is_401_json(self, client):
        response = client.get("/api/projects")
        assert response.status_code == 401
        assert response.json() == {"error": "Unauthorized"}

    def test_public_paths_skip_provider(self, client, provider):
        assert client.get("/health").json()["status"] == "healthy"
        assert client.get("/").status_code == 200
        assert provider.calls == []

    def test_malformed_cookie_is_unauthenticated(self, client):
        client.cookies.set("ph-access-token", "not-a-jwt")
        response = client.get("/projects")
        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_rejected_token_clears_cookies(self, client, provider):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        provider.tokens.clear()
        response = client.get("/projects")
        assert response.status_code == 307
        set_cookie = ",".join(response.headers.get_list("set-cookie"))
        assert "ph-access-token=" in set_cookie

    def test_garbage_bearer_falls_back_to_cookie(self, client, provider):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        response = client.get("/api/projects", headers={"Authorization": "Bearer garbage"})
        assert response.status_code == 200
        assert response.headers.get_list("set-cookie") == []

    def test_rejected_bearer_keeps_cookies(self, client, provider, token_for):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        response = client.get("/projects", headers={"Authorization": f"Bearer {token_for('u-owner')}"})
        assert response.status_code == 307
        assert response.headers.get_list("set-cookie") == []

    @pytest.mark.parametrize("mode", ["down", "unreachable"])
    def test_provider_failure_fails_closed(self, client, provider, mode):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        provider.mode = mode
        page = client.get("/projects")
        assert page.status_code == 307
        assert page.headers["location"] == "/login"
        assert client.get("/api/projects").status_code == 401

    def test_unexpected_error_redirects_to_login(self, client, provider):
        client.cookies.set("ph-access-token", provider.issue("u-owner"))
        provider.mode = "explode"
        response = client.get("/api/projects")
        assert response.status_code == 307
        assert response.headers["location"] == "/login"

    def test_expiring_token_is_refreshed_and_rewritten(self, client, provider):
        client.cookies.set("ph-access-token", provider.issue("u-owner", expires_in=5))
        client.cookies.set("ph-refresh-token", provider.issue_refresh("u-owner"))
        response = client.get("/projects")
        assert response.status_code == 200
        set_cookie = ",".join(response.headers.get_list("set-cookie"))
        assert "ph-access-token=" in set_cookie
        assert "ph-refresh-token=" in set_cookie
        assert "POST /token" in provider.calls

    def test_preflight_passes(self, client):
        response = client.options(
            "/api/projects",
            headers={
                "Origin": "http://localhost:3000",
                "Access-Control-Request-Method": "GET",
            },
        )
        assert response.status_code == 200
