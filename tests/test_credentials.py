"""Tests for credential import from pasted text."""

import pytest

from rt_intel.credentials import find_chat_id, find_token, parse_credentials

TOKEN = "7012345678:AAHdqTcvCH1vGWJxfSeofSAs0K5PALDsawQ"


class TestFindToken:

    def test_token_inside_botfather_message(self):
        text = f"Done! Use this token to access the HTTP API:\n{TOKEN}\nKeep your token secure"
        assert find_token(text) == TOKEN

    def test_short_secret_is_not_a_token(self):
        assert find_token("7012345678:tooshort") is None

    def test_empty_text(self):
        assert find_token("") is None
        assert find_token(None) is None


class TestFindChatId:

    @pytest.mark.parametrize("text,expected", [
        ("channel: @rt_intel_news", "@rt_intel_news"),
        ("id -1001234567890 for the channel", "-1001234567890"),
        ("group -123456789", "-123456789"),
    ])
    def test_recognized_forms(self, text, expected):
        assert find_chat_id(text) == expected

    def test_short_handle_is_ignored(self):
        assert find_chat_id("@abc") is None


class TestParseCredentials:

    def test_both_parts_found(self):
        credentials = parse_credentials(f"token={TOKEN}\nchat=@rt_intel_news")
        assert credentials.token == TOKEN
        assert credentials.chat_id == "@rt_intel_news"

    def test_token_alone_is_not_enough(self):
        assert parse_credentials(f"token={TOKEN}") is None

    def test_chat_alone_is_not_enough(self):
        assert parse_credentials("-1001234567890") is None
