"""Tests for Slack notifications."""

import httpx
import pytest
from unittest.mock import MagicMock, patch

from infra import slack


@pytest.mark.no_db
class TestGetWebhookUrl:
    """Tests for get_webhook_url."""

    def test_leads_webhook_overrides_default(self, monkeypatch):
        monkeypatch.setenv("SLACK_WEBHOOK_URL", "https://hooks.example/default")
        monkeypatch.setenv("SLACK_LEADS_WEBHOOK_URL", "https://hooks.example/leads")

        assert slack.get_webhook_url("#leads") == "https://hooks.example/leads"
        assert slack.get_webhook_url("#ops") == "https://hooks.example/default"

    def test_not_configured(self, monkeypatch):
        monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
        monkeypatch.delenv("SLACK_LEADS_WEBHOOK_URL", raising=False)

        assert slack.get_webhook_url() is None


@pytest.mark.no_db
class TestSendMessage:
    """Tests for send_message."""

    def test_no_webhook_returns_false(self, monkeypatch):
        monkeypatch.delenv("SLACK_WEBHOOK_URL", raising=False)
        monkeypatch.delenv("SLACK_LEADS_WEBHOOK_URL", raising=False)

        with patch.object(slack.httpx, "post") as mock_post:
            assert slack.send_message("hello") is False
            mock_post.assert_not_called()

    def test_posts_text(self):
        with patch.object(slack.httpx, "post") as mock_post:
            mock_post.return_value = MagicMock(status_code=200)

            assert slack.send_message("hello", webhook_url="https://hooks.example/x") is True
            mock_post.assert_called_once_with(
                "https://hooks.example/x", json={"text": "hello"}, timeout=10.0
            )

    def test_error_status(self):
        with patch.object(slack.httpx, "post") as mock_post:
            mock_post.return_value = MagicMock(status_code=500, text="boom")

            assert slack.send_message("hello", webhook_url="https://hooks.example/x") is False

    def test_transport_error(self):
        with patch.object(slack.httpx, "post") as mock_post:
            mock_post.side_effect = httpx.ConnectError("refused")

            assert slack.send_message("hello", webhook_url="https://hooks.example/x") is False


@pytest.mark.no_db
class TestSummaries:
    """Tests for the formatted summaries."""

    def test_discovery_summary(self):
        with patch.object(slack, "send_message", return_value=True) as mock_send:
            assert slack.send_discovery_summary("Niagara", 10, 2, 1, 37) is True

            text = mock_send.call_args.args[0]
            assert "Grid: Niagara" in text
            assert "Cells searched: 10 (2 saturated)" in text
            assert "New leads: 37" in text

    def test_cluster_summary(self):
        with patch.object(slack, "send_message", return_value=True) as mock_send:
            slack.send_cluster_summary(4, 30, 41, clusters_removed=3)

            text = mock_send.call_args.args[0]
            assert "Clusters: 4 (replaced 3)" in text
            assert "Leads clustered: 30/41" in text
