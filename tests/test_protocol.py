"""
Tests for command classification and server error mapping.
"""

import pytest

from nutline.nut import protocol
from nutline.nut.errors import (
    NUTAccessDeniedError,
    NUTAlreadyTLSError,
    NUTAuthenticationError,
    NUTInvalidArgumentError,
    NUTServerError,
    NUTUnknownCommandError,
    NUTUnknownError,
    NUTUnknownUPSError,
    NUTUnsupportedError,
    error_for_code,
)


class TestCommandClassification:
    """Test listing detection and sentinels."""

    @pytest.mark.parametrize("command", ["LIST UPS", "LIST VAR myups", "  LIST CMD myups  "])
    def test_listing_commands(self, command):
        assert protocol.is_listing_command(command) is True

    @pytest.mark.parametrize("command", ["VER", "GET VAR myups ups.status", "list ups", "LISTUPS", "LIST"])
    def test_single_line_commands(self, command):
        assert protocol.is_listing_command(command) is False

    def test_sentinel_uses_trimmed_command(self):
        assert protocol.sentinel_for(" LIST VAR myups ") == "END LIST VAR myups"

    def test_listing_entries_strips_header_and_sentinel(self):
        lines = ["BEGIN LIST UPS", "UPS a \"A\"", "UPS b \"B\"", "END LIST UPS"]
        assert protocol.listing_entries(lines) == ["UPS a \"A\"", "UPS b \"B\""]

    def test_empty_listing_has_no_entries(self):
        assert protocol.listing_entries(["BEGIN LIST UPS", "END LIST UPS"]) == []
        assert protocol.listing_entries([]) == []


class TestErrorMapping:
    """Test translation of ERR lines."""

    @pytest.mark.parametrize(
        "code, error_class",
        [
            ("UNKNOWN-COMMAND", NUTUnknownCommandError),
            ("INVALID-ARGUMENT", NUTInvalidArgumentError),
            ("INVALID-PASSWORD", NUTAuthenticationError),
            ("USERNAME-REQUIRED", NUTAuthenticationError),
            ("ACCESS-DENIED", NUTAccessDeniedError),
            ("UNKNOWN-UPS", NUTUnknownUPSError),
            ("VAR-NOT-SUPPORTED", NUTUnsupportedError),
            ("CMD-NOT-SUPPORTED", NUTUnsupportedError),
            ("READONLY", NUTUnsupportedError),
            ("ALREADY-SSL-MODE", NUTAlreadyTLSError),
        ],
    )
    def test_known_codes(self, code, error_class):
        error = error_for_code(code)
        assert type(error) is error_class
        assert error.code == code

    def test_unmapped_code_is_unknown_error(self):
        error = error_for_code("DATA-STALE")
        assert isinstance(error, NUTUnknownError)
        assert isinstance(error, NUTUnknownCommandError)
        assert error.code == "DATA-STALE"

    def test_missing_code_is_unknown_command(self):
        assert type(error_for_code("")) is NUTUnknownCommandError

    def test_raise_for_error_with_detail(self):
        with pytest.raises(NUTAccessDeniedError) as exc_info:
            protocol.raise_for_error(["ERR ACCESS-DENIED not allowed here"])
        assert exc_info.value.code == "ACCESS-DENIED"
        assert exc_info.value.detail == "not allowed here"

    def test_raise_for_error_unknown_command(self):
        with pytest.raises(NUTUnknownCommandError):
            protocol.raise_for_error(["ERR UNKNOWN-COMMAND"])

    def test_bare_err_prefix_is_unknown_command(self):
        with pytest.raises(NUTUnknownCommandError):
            protocol.raise_for_error(["ERR "])

    @pytest.mark.parametrize("lines", [[], ["OK"], ["ERRATA"], ["VAR ups x \"ERR \""]])
    def test_non_error_responses_pass(self, lines):
        protocol.raise_for_error(lines)

    def test_server_errors_share_base_class(self):
        assert issubclass(NUTUnsupportedError, NUTServerError)
