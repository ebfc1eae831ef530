"""Tests for the click-based interactive prompter.

Each prompt runs inside a throwaway click command so ``CliRunner`` can feed
scripted stdin and capture everything written to the terminal.
"""

from __future__ import annotations

import click
import pytest
from click.testing import CliRunner

from caldav_cli.prompts import ClickPrompter
from caldav_cli.providers import PRESETS

pytestmark = pytest.mark.unit


def _ask(input_text: str, call):
    answers = []

    @click.command()
    def prompt_command() -> None:
        answers.append(call(ClickPrompter()))

    result = CliRunner().invoke(prompt_command, input=input_text)
    assert result.exit_code == 0, result.output
    return answers[0], result.output


class TestSelectProvider:
    def test_pick_by_number(self):
        result, _ = _ask("2\n", lambda p: p.select_provider(PRESETS))
        assert result.id == "google"

    def test_default_is_first(self):
        result, _ = _ask("\n", lambda p: p.select_provider(PRESETS))
        assert result.id == "icloud"

    def test_custom_entry_returns_none(self):
        result, _ = _ask(f"{len(PRESETS) + 1}\n", lambda p: p.select_provider(PRESETS))
        assert result is None

    def test_out_of_range_is_reasked(self):
        result, _ = _ask("99\n0\n3\n", lambda p: p.select_provider(PRESETS))
        assert result.id == "yandex"


class TestTextInput:
    def test_server_url_requires_http_scheme(self):
        result, _ = _ask(
            "caldav.example.com\nftp://x\n https://dav.example.com \n",
            lambda p: p.input_server_url("Enter the CalDAV server URL"),
        )
        assert result == "https://dav.example.com"

    def test_blank_account_name_is_reasked(self):
        result, _ = _ask("   \n work \n", lambda p: p.input_account_name())
        assert result == "work"

    def test_username_hint_is_shown(self):
        result, output = _ask("me@gmail.com\n", lambda p: p.input_username("full email address"))
        assert result == "me@gmail.com"
        assert "Username (full email address)" in output

    def test_password_is_hidden(self):
        result, output = _ask("s3cret\n", lambda p: p.input_password("Use an app password"))
        assert result == "s3cret"
        assert "Use an app password" in output
        assert "s3cret" not in output

    def test_client_credentials(self):
        client_id, _ = _ask("my-id\n", lambda p: p.input_client_id())
        secret, _ = _ask("my-secret\n", lambda p: p.input_client_secret())
        assert (client_id, secret) == ("my-id", "my-secret")

    @pytest.mark.parametrize(("answer", "expected"), [("y\n", True), ("n\n", False), ("\n", False)])
    def test_confirm(self, answer, expected):
        result, _ = _ask(answer, lambda p: p.confirm("Remove?"))
        assert result is expected
