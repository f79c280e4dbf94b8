"""
Unit tests for the error taxonomy, error-body parsers and the error formatter.
"""
import httpx
import pytest

from mediahub.integrations.errors import (
    ServiceClientError,
    ServiceConfigurationError,
    ServiceLockoutError,
    format_tool_error,
    is_error_response,
    parse_error_body,
    parse_message_field,
    parse_nested_errors,
    parse_validation_errors,
    with_tool_error_handling,
)


class TestFormatToolError:
    """Test the user-facing error vocabulary."""

    def test_auth_error(self):
        error = ServiceClientError.api_error("Radarr", 401, "Unauthorized")

        result = format_tool_error(error, "Radarr", "search movies")

        assert "authentication failed" in result["error"]
        assert result["error"] == (
            "Radarr authentication failed: Unauthorized. Please check your API key in settings."
        )

    def test_forbidden_is_auth_error(self):
        error = ServiceClientError.api_error("Sonarr", 403, "Forbidden")

        assert "authentication failed" in format_tool_error(error, "Sonarr", "get queue")["error"]

    def test_not_found(self):
        error = ServiceClientError.api_error("Radarr", 404, "Not Found")

        result = format_tool_error(error, "Radarr", "search movies")

        assert "endpoint not found" in result["error"]
        assert "Please verify your Radarr URL in settings." in result["error"]

    def test_bad_request(self):
        error = ServiceClientError.api_error("Radarr", 400, "Title: must not be empty")

        result = format_tool_error(error, "Radarr", "add movie")

        assert result == {"error": "Radarr validation error: Title: must not be empty"}

    def test_no_status_passes_message_through(self):
        error = ServiceConfigurationError.not_configured("Radarr")

        result = format_tool_error(error, "Radarr", "search movies")

        assert result == {"error": "Radarr is not configured. Please configure Radarr in settings."}

    def test_other_status_is_generic_failure(self):
        error = ServiceClientError.api_error("Radarr", 503, "Service Unavailable")

        result = format_tool_error(error, "Radarr", "search movies")

        assert result == {"error": "Failed to search movies: Service Unavailable"}

    def test_plain_exception(self):
        result = format_tool_error(RuntimeError("boom"), "Radarr", "search movies")

        assert result == {"error": "Radarr: Failed to search movies: boom"}

    def test_network_error_after_retries(self):
        result = format_tool_error(httpx.ConnectError("connection refused"), "Sonarr", "get queue")

        assert result == {"error": "Sonarr: Failed to get queue: connection refused"}

    def test_lockout_is_reported_as_auth_failure(self):
        error = ServiceLockoutError("qBittorrent IP banned", "qBittorrent")

        assert "authentication failed" in format_tool_error(error, "qBittorrent", "get torrents")["error"]


class TestConfigurationErrors:

    def test_messages(self):
        assert str(ServiceConfigurationError.disabled("Sonarr")) == (
            "Sonarr is disabled. Please enable it in settings."
        )
        assert str(ServiceConfigurationError.missing_api_key("Jellyfin")) == (
            "Jellyfin API key is not configured. Please add your API key in settings."
        )

    def test_never_carry_status(self):
        assert ServiceConfigurationError.disabled("Sonarr").status_code is None


class TestErrorBodyParsers:
    """Test each error-body shape independently and in sequence."""

    def test_validation_array(self):
        body = [
            {"propertyName": "Path", "errorMessage": "Path is already configured"},
            {"errorMessage": "Root folder missing"},
        ]

        assert parse_validation_errors(body) == "Path: Path is already configured; Root folder missing"

    def test_validation_array_ignores_other_lists(self):
        assert parse_validation_errors([1, 2]) is None
        assert parse_validation_errors([]) is None

    @pytest.mark.parametrize("field", ["message", "Message", "errorMessage", "error"])
    def test_message_fields(self, field):
        assert parse_message_field({field: "Something broke"}) == "Something broke"

    def test_message_field_requires_string(self):
        assert parse_message_field({"error": {"code": 1}}) is None

    def test_nested_errors(self):
        body = {"errors": {"Title": ["is required"], "Year": "must be positive"}}

        assert parse_nested_errors(body) == "Title: is required; Year: must be positive"

    def test_first_success_wins(self):
        body = {"message": "flat message", "errors": {"Title": ["nested"]}}

        assert parse_error_body(body) == "flat message"

    def test_unrecognized_body(self):
        assert parse_error_body({"status": 500}) is None
        assert parse_error_body("plain") is None


@pytest.mark.asyncio
class TestWithToolErrorHandling:
    """Test the capability handler decorator."""

    async def test_passes_results_through(self):
        @with_tool_error_handling("Radarr", "search movies")
        async def handler():
            return {"results": []}

        assert await handler() == {"results": []}

    async def test_formats_raised_errors(self):
        @with_tool_error_handling("Radarr", "search movies")
        async def handler():
            raise ServiceClientError.api_error("Radarr", 401, "Unauthorized")

        result = await handler()

        assert is_error_response(result)
        assert "authentication failed" in result["error"]

    async def test_formats_unexpected_errors(self):
        @with_tool_error_handling("Radarr", "search movies")
        async def handler():
            raise KeyError("id")

        assert await handler() == {"error": "Radarr: Failed to search movies: 'id'"}


class TestIsErrorResponse:

    def test_detection(self):
        assert is_error_response({"error": "x"}) is True
        assert is_error_response({"success": True}) is False
        assert is_error_response("error") is False
