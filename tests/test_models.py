"""
Tests for SolutionClient SDK session and wire models.
"""

from datetime import datetime, timedelta, timezone

from mcp.types import CallToolResult, TextContent

from solutionclient.models import (
    ContentBlock,
    Credential,
    ServerCapabilities,
    ToolResult,
)

ISSUED = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class TestCredential:
    def test_from_token_response(self):
        credential = Credential.from_token_response(
            {"access_token": "abc", "expires_in": 300, "refresh_token": "r-1"},
            now=ISSUED,
        )
        assert credential.token == "abc"
        assert credential.issued_at == ISSUED
        assert credential.expires_at == ISSUED + timedelta(seconds=300)
        assert credential.refresh_token == "r-1"

    def test_keeps_previous_refresh_token(self):
        previous = Credential(
            token="old", expires_at=ISSUED, issued_at=ISSUED, refresh_token="r-1"
        )
        credential = Credential.from_token_response(
            {"access_token": "new", "expires_in": 60}, previous=previous, now=ISSUED
        )
        assert credential.refresh_token == "r-1"

    def test_missing_expiry_means_zero_lifetime(self):
        credential = Credential.from_token_response({"access_token": "abc"}, now=ISSUED)
        assert credential.lifetime == timedelta(0)

    def test_refresh_at_ratio(self):
        credential = Credential(
            token="t", issued_at=ISSUED, expires_at=ISSUED + timedelta(seconds=100)
        )
        assert credential.refresh_at(0.8) == ISSUED + timedelta(seconds=80)

    def test_is_expired(self):
        credential = Credential(
            token="t", issued_at=ISSUED, expires_at=ISSUED + timedelta(seconds=10)
        )
        assert not credential.is_expired(ISSUED + timedelta(seconds=9))
        assert credential.is_expired(ISSUED + timedelta(seconds=10))

    def test_repr_masks_secrets(self):
        credential = Credential(
            token="super-secret", issued_at=ISSUED, expires_at=ISSUED, refresh_token="r"
        )
        text = repr(credential)
        assert "super-secret" not in text
        assert "***" in text


class TestToolResult:
    def test_text_concatenates_blocks_in_order(self):
        result = ToolResult.from_mcp(
            {
                "isError": False,
                "content": [
                    {"type": "text", "text": '{"a": '},
                    {"type": "image", "data": "..."},
                    {"type": "text", "text": "1}"},
                ],
            }
        )
        assert result.text == '{"a": 1}'

    def test_error_message_joins_with_spaces(self):
        result = ToolResult(
            is_error=True,
            content=[ContentBlock("text", "not"), ContentBlock("text", "found")],
        )
        assert result.error_message == "not found"

    def test_error_without_text_has_default_message(self):
        assert ToolResult(is_error=True).error_message == "Unknown error"

    def test_empty_content_has_no_text(self):
        assert ToolResult.from_mcp({"content": []}).text == ""

    def test_from_mcp_call_tool_result(self):
        raw = CallToolResult(
            content=[TextContent(type="text", text='{"hint_id": 1, "hint": "x"}')],
            isError=False,
        )
        result = ToolResult.from_mcp(raw)
        assert result.is_error is False
        assert result.text == '{"hint_id": 1, "hint": "x"}'

    def test_from_mcp_error_result(self):
        raw = CallToolResult(
            content=[TextContent(type="text", text="boom")],
            isError=True,
        )
        result = ToolResult.from_mcp(raw)
        assert result.is_error
        assert result.error_message == "boom"


class TestServerCapabilities:
    def test_names_and_dict(self):
        capabilities = ServerCapabilities(
            tools=[{"name": "get_best_hint"}, {"name": "get_success_rate"}],
            resources=[{"name": "incidents"}],
        )
        assert capabilities.tool_names == ["get_best_hint", "get_success_rate"]
        assert capabilities.resource_names == ["incidents"]
        assert capabilities.to_dict()["resources"] == [{"name": "incidents"}]
