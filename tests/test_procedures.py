"""
Tests for stored procedure response validation.

A response that does not match its procedure's schema is never trusted.
"""

import pytest

from projecthub.errors import UpstreamFailure
from projecthub.storage.procedures import (
    ADD_MEMBER,
    PROVISION_PROJECT,
    REGENERATE_CREDENTIALS,
    ProvisionResult,
    parse_result,
)


class TestParseResult:
    def test_unwraps_single_row(self):
        result = parse_result(
            PROVISION_PROJECT,
            [{"success": True, "message": "ok", "project_id": "p1", "schema_name": "proj_p1"}],
        )
        assert isinstance(result, ProvisionResult)
        assert result.schema_name == "proj_p1"

    def test_accepts_bare_object(self):
        assert parse_result(ADD_MEMBER, {"success": False, "message": "already"}).success is False

    def test_refusal_is_not_an_error(self):
        result = parse_result(PROVISION_PROJECT, [{"success": False, "message": "exists"}])
        assert not result.success
        assert result.message == "exists"

    @pytest.mark.parametrize("raw", [
        [],
        [{"success": True}, {"success": True}],
        "ok",
        None,
        [["success", True]],
        [{"message": "no success flag"}],
        [{"success": "maybe"}],
    ])
    def test_wrong_shape_is_upstream_failure(self, raw):
        with pytest.raises(UpstreamFailure):
            parse_result(ADD_MEMBER, raw)

    def test_success_without_schema_name(self):
        with pytest.raises(UpstreamFailure):
            parse_result(PROVISION_PROJECT, [{"success": True, "project_id": "p1"}])

    def test_success_without_new_credential(self):
        with pytest.raises(UpstreamFailure):
            parse_result(REGENERATE_CREDENTIALS, [{"success": True}])

    def test_upstream_failure_hides_detail_from_clients(self):
        with pytest.raises(UpstreamFailure) as exc_info:
            parse_result(ADD_MEMBER, "garbage")
        assert exc_info.value.status_code == 500
        assert exc_info.value.to_body() == {"error": "Internal server error"}

