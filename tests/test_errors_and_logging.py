"""Tests for structured engine errors and request-id logging."""

import logging

from booking_engine.errors import Conflict, InvalidRule, NotFound, PermissionDenied
from booking_engine.logging_context import (
    RequestIdFilter,
    get_request_id,
    get_request_logger,
    new_request_id,
    set_request_id,
)


class TestErrors:
    def test_not_found_message_and_ids(self):
        err = NotFound("series", "RS-9")
        assert err.message == "Series RS-9 not found"
        assert err.to_dict() == {
            "kind": "not_found",
            "message": "Series RS-9 not found",
            "ids": ["RS-9"],
            "counts": {},
        }

    def test_invalid_rule_counts(self):
        err = InvalidRule("Generated 3 of 5 visits", requested=5, generated=3)
        assert err.to_dict()["counts"] == {"requested": 5, "generated": 3}

    def test_conflict_carries_current_record(self):
        err = Conflict("changed", "BK-1", current={"status": "cancelled"})
        assert err.current == {"status": "cancelled"}
        assert err.ids == ["BK-1"]

    def test_permission_denied_kind(self):
        assert PermissionDenied("u-1").kind == "permission_denied"


class TestRequestIdLogging:
    def test_new_request_id_is_installed(self):
        request_id = new_request_id()
        assert request_id.startswith("REQ-")
        assert get_request_id() == request_id

    def test_filter_stamps_record(self):
        set_request_id("REQ-test")
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert RequestIdFilter().filter(record)
        assert record.request_id == "REQ-test"

    def test_filter_attached_once(self):
        logger = get_request_logger("booking_engine.test_once")
        get_request_logger("booking_engine.test_once")
        assert sum(isinstance(f, RequestIdFilter) for f in logger.filters) == 1
