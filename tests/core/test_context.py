"""Tests for request context and log processors."""

from progression_engine.core.context import (
    RequestContext,
    clear_context,
    get_context,
    get_user_id,
    set_request_id,
    set_user_id,
)
from progression_engine.core.logging import add_context_processor, filter_sensitive_data


class TestRequestContext:
    def test_binds_and_restores(self):
        clear_context()

        with RequestContext(request_id="req-1", user_id="learner-1"):
            assert get_context() == {"request_id": "req-1", "user_id": "learner-1"}

        assert get_context() == {}

    def test_generates_request_id(self):
        clear_context()

        with RequestContext(user_id="learner-1"):
            assert get_context()["request_id"]

    def test_set_user_id_stringifies(self):
        clear_context()
        set_user_id(42)

        assert get_user_id() == "42"
        clear_context()


class TestLogProcessors:
    def test_context_is_added_without_overriding(self):
        clear_context()
        set_request_id("req-9")
        set_user_id("learner-1")

        event = add_context_processor(None, "info", {"event": "x", "user_id": "other"})

        assert event["request_id"] == "req-9"
        assert event["user_id"] == "other"
        clear_context()

    def test_sensitive_values_are_masked(self):
        event = filter_sensitive_data(
            None,
            "info",
            {"event": "x", "api_key": "abcdefgh", "nested": {"password": "pw"}},
        )

        assert event["api_key"] == "ab****gh"
        assert event["nested"] == {"password": "***"}
        assert event["event"] == "x"
