from unittest.mock import Mock

import pytest
import requests
from tenacity import wait_none

from memoryhaze.api.client import MemoryHazeClient, error_message
from memoryhaze.auth.session import Session
from memoryhaze.utils.exceptions import (
    AuthorizationError,
    NotFoundError,
    ServerError,
    ValidationError,
)


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("No JSON object could be decoded")
        return self._body


def stub_http(*responses):
    http = Mock()
    http.request.side_effect = list(responses)
    return http


def make_client(*responses, token=None):
    session = Session()
    if token:
        session._token = token
    return MemoryHazeClient(session, base_url="http://api.test/", http=stub_http(*responses))


class TestErrorMessage:
    def test_joins_error_and_message(self):
        body = {"error": "Failed to create gift request", "message": "Database unavailable"}
        assert error_message(body, "x") == "Failed to create gift request: Database unavailable"

    def test_appends_field_details(self):
        body = {
            "error": "Validation failed",
            "details": [{"field": "scenarios", "message": "too short"}, {"field": "photos", "message": "required"}],
        }
        assert error_message(body, "x") == "Validation failed (scenarios: too short, photos: required)"

    def test_string_details_and_default(self):
        assert error_message({"details": "Bad date"}, "x") == "Bad date"
        assert error_message({}, "fallback") == "fallback"
        assert error_message(["not", "a", "dict"], "fallback") == "fallback"

    def test_duplicate_texts_collapse(self):
        assert error_message({"error": "Nope", "message": "Nope"}, "x") == "Nope"


class TestStatusMapping:
    @pytest.mark.parametrize("status_code", [400, 409, 422])
    def test_validation_statuses(self, status_code):
        client = make_client(FakeResponse(status_code, {"error": "Invalid"}))
        with pytest.raises(ValidationError) as exc_info:
            client.create_user("a@example.com", "secret1")
        assert exc_info.value.status_code == status_code
        assert exc_info.value.message == "Invalid"

    def test_unauthorized(self):
        client = make_client(FakeResponse(401, {"error": "Token expired"}))
        with pytest.raises(AuthorizationError) as exc_info:
            client.get_gift("g1")
        assert exc_info.value.reason == AuthorizationError.UNAUTHENTICATED

    def test_forbidden_keeps_payload(self):
        body = {"error": "This gift is intended for a different user", "intendedForDifferentUser": True}
        client = make_client(FakeResponse(403, body))
        with pytest.raises(AuthorizationError) as exc_info:
            client.get_gift("g1", "enc")
        assert exc_info.value.reason == AuthorizationError.FORBIDDEN
        assert exc_info.value.payload["intendedForDifferentUser"] is True

    def test_not_found(self):
        client = make_client(FakeResponse(404, {"error": "Gift not found"}))
        with pytest.raises(NotFoundError, match="Gift not found"):
            client.get_gift("missing")

    def test_non_json_error_body(self):
        client = make_client(FakeResponse(502))
        with pytest.raises(ServerError) as exc_info:
            client.create_gift_request({})
        assert exc_info.value.message == "Server error (502)"

    def test_list_body_is_wrapped(self):
        client = make_client(FakeResponse(200, [1, 2]))
        assert client.create_gift_for_user({}) == {"data": [1, 2]}


class TestRequests:
    def test_bearer_header_and_url(self):
        client = make_client(FakeResponse(200, {"gifts": []}), token="abc.def.ghi")
        client.list_gifts()

        method, url = client.http.request.call_args.args
        headers = client.http.request.call_args.kwargs["headers"]
        assert (method, url) == ("GET", "http://api.test/api/gifts")
        assert headers["Authorization"] == "Bearer abc.def.ghi"
        # Only requests.Session gets a timeout
        assert "timeout" not in client.http.request.call_args.kwargs

    def test_login_is_unauthenticated(self):
        client = make_client(FakeResponse(200, {"token": "t"}), token="old")
        client.login("a@example.com", "pw")
        headers = client.http.request.call_args.kwargs["headers"]
        assert "Authorization" not in headers

    def test_ids_are_quoted(self):
        client = make_client(FakeResponse(200, {"gift": {}}))
        client.get_gift("a/b", "x y")
        assert client.http.request.call_args.args[1] == "http://api.test/api/gifts/a%2Fb/x%20y"

    def test_reject_sends_empty_reason(self):
        client = make_client(FakeResponse(200, {"request": {}}))
        client.reject_request("r1")
        assert client.http.request.call_args.kwargs["json"] == {"reason": ""}

    def test_transport_error(self):
        client = make_client(requests.exceptions.ConnectionError("refused"))
        with pytest.raises(ServerError, match="Failed to connect to server"):
            client.verify_request("r1")

    def test_timeout(self):
        client = make_client(requests.exceptions.ReadTimeout("slow"))
        with pytest.raises(ServerError, match="too long"):
            client.create_gift_request({})


class TestRetries:
    def test_writes_are_not_retried(self):
        client = make_client(FakeResponse(503, {"error": "busy"}), FakeResponse(200, {}))
        with pytest.raises(ServerError):
            client.create_gift_request({})
        assert client.http.request.call_count == 1

    def test_reads_retry_transient_failures(self):
        client = make_client(
            FakeResponse(503, {"error": "busy"}),
            FakeResponse(200, {"_id": "u1", "email": "a@example.com"}),
        )
        body = MemoryHazeClient.get_me.retry_with(wait=wait_none())(client)
        assert body["_id"] == "u1"
        assert client.http.request.call_count == 2

    def test_reads_give_up_after_three_attempts(self):
        client = make_client(*[FakeResponse(500, {"error": "down"})] * 3)
        with pytest.raises(ServerError, match="down"):
            MemoryHazeClient.list_gifts.retry_with(wait=wait_none())(client)
        assert client.http.request.call_count == 3

    def test_reads_do_not_retry_client_errors(self):
        client = make_client(FakeResponse(403, {"error": "Admin access required"}))
        with pytest.raises(AuthorizationError):
            MemoryHazeClient.request_stats.retry_with(wait=wait_none())(client)
        assert client.http.request.call_count == 1
