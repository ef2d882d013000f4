"""Tests for the planner oracle (autodirector/ai/oracle.py)."""

import asyncio
from unittest.mock import MagicMock, patch

from autodirector.ai.oracle import ClaudePlannerOracle, build_prompt, parse_oracle_reply
from autodirector.core.exceptions import OracleError


class TestParseOracleReply:
    """Untrusted replies validate or are discarded whole."""

    def test_list_of_steps(self):
        steps = parse_oracle_reply('[{"kind": "capture_pdf", "params": {"url": "a.com"}}]')
        assert [(s.kind, s.params) for s in steps] == [("capture_pdf", {"url": "a.com"})]

    def test_code_fences_stripped(self):
        reply = '```json\n[{"kind": "generate_image", "params": {"prompt": "fox"}}]\n```'
        assert [s.kind for s in parse_oracle_reply(reply)] == ["generate_image"]

    def test_steps_wrapper(self):
        reply = '{"steps": [{"kind": "add_monitor", "params": {"url": "a.com", "to": "x@y.z"}}]}'
        assert [s.kind for s in parse_oracle_reply(reply)] == ["add_monitor"]

    def test_single_object(self):
        assert len(parse_oracle_reply('{"kind": "send_news_digest"}')) == 1

    def test_unknown_kind_discards_everything(self):
        reply = '[{"kind": "capture_pdf", "params": {}}, {"kind": "launch_rocket"}]'
        assert parse_oracle_reply(reply) == []

    def test_extra_fields_rejected(self):
        assert parse_oracle_reply('[{"kind": "capture_pdf", "why": "because"}]') == []

    def test_not_json(self):
        assert parse_oracle_reply("Sure! Here is your plan.") == []

    def test_wrong_shape(self):
        assert parse_oracle_reply("42") == []

    def test_empty(self):
        assert parse_oracle_reply("") == []
        assert parse_oracle_reply(None) == []


class TestBuildPrompt:
    def test_lists_vocabulary_and_request(self):
        prompt = build_prompt("draw a fox")
        assert "- capture_screenshot: url" in prompt
        assert "- send_news_digest: topic, to" in prompt
        assert prompt.rstrip().endswith("draw a fox")


class TestClaudePlannerOracle:
    """Availability and failure handling."""

    def test_available_needs_key_and_flag(self, mock_config):
        mock_config.claude_api_key = "sk-ant"
        mock_config.oracle_enabled = True
        assert ClaudePlannerOracle(mock_config).is_available() is True
        mock_config.oracle_enabled = False
        assert ClaudePlannerOracle(mock_config).is_available() is False

    def test_no_key_means_no_steps(self, mock_config):
        """A missing key is not an exception for callers."""
        assert ClaudePlannerOracle(mock_config).plan_sync("draw a fox") == []

    def test_reply_parsed(self, mock_config):
        oracle = ClaudePlannerOracle(mock_config)
        reply = '[{"kind": "generate_image", "params": {"prompt": "fox"}}]'
        with patch.object(ClaudePlannerOracle, "_complete", return_value=reply) as complete:
            steps = asyncio.run(oracle.plan("draw a fox"))
        assert [s.kind for s in steps] == ["generate_image"]
        assert "draw a fox" in complete.call_args.args[0]

    def test_api_error_means_no_steps(self, mock_config):
        oracle = ClaudePlannerOracle(mock_config)
        with patch.object(ClaudePlannerOracle, "_complete", side_effect=OracleError("429")):
            assert oracle.plan_sync("draw a fox") == []

    def test_complete_uses_configured_model(self, mock_config):
        mock_config.claude_api_key = "sk-ant"
        oracle = ClaudePlannerOracle(mock_config)
        client = MagicMock()
        client.messages.create.return_value = MagicMock(
            content=[MagicMock(text="[]")],
            usage=MagicMock(input_tokens=10, output_tokens=2),
        )
        oracle._client = client
        assert oracle.plan_sync("hello") == []
        kwargs = client.messages.create.call_args.kwargs
        assert kwargs["model"] == mock_config.planner_model
        assert kwargs["system"]
