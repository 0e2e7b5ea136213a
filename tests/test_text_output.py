"""Tests for clipboard paste output."""

import subprocess
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from voxpaste.core.output import TextOutputController
from voxpaste.utils.platform import check_accessibility_permissions, get_platform

MODULE = "voxpaste.core.output.text_output"


@pytest.fixture
def keyboard():
    with patch(f"{MODULE}.KeyboardController") as controller_class:
        yield controller_class.return_value


class TestTextOutputController:
    @patch(f"{MODULE}.time.sleep")
    @patch(f"{MODULE}.subprocess.run")
    @patch(f"{MODULE}.get_platform", return_value="linux")
    def test_pastes_and_restores_clipboard(self, _system, mock_run, _sleep, keyboard):
        mock_run.side_effect = [
            SimpleNamespace(returncode=0, stdout="previous"),
            SimpleNamespace(returncode=0),
            SimpleNamespace(returncode=0),
        ]
        done = MagicMock()

        TextOutputController(on_complete=done).output_text("今天天气不错")

        set_call = mock_run.call_args_list[1]
        assert set_call.args[0] == ["xclip", "-selection", "clipboard"]
        assert set_call.kwargs["input"] == "今天天气不错"
        keyboard.tap.assert_called_once_with("v")
        assert mock_run.call_args_list[2].kwargs["input"] == "previous"
        done.assert_called_once()

    @patch(f"{MODULE}.time.sleep")
    @patch(f"{MODULE}.subprocess.run")
    @patch(f"{MODULE}.get_platform", return_value="linux")
    def test_types_when_clipboard_unavailable(self, _system, mock_run, _sleep, keyboard):
        mock_run.side_effect = FileNotFoundError("xclip")

        TextOutputController().output_text("hello")

        keyboard.type.assert_called_once_with("hello")
        keyboard.tap.assert_not_called()

    @patch(f"{MODULE}.subprocess.run")
    def test_empty_text_is_not_pasted(self, mock_run, keyboard):
        done = MagicMock()

        TextOutputController(on_complete=done).output_text("")

        mock_run.assert_not_called()
        done.assert_called_once()


class TestPlatform:
    @pytest.mark.parametrize(
        "system,expected", [("Darwin", "macos"), ("Linux", "linux"), ("Windows", "windows")]
    )
    def test_get_platform(self, system, expected):
        with patch("voxpaste.utils.platform.platform.system", return_value=system):
            assert get_platform() == expected

    @patch("voxpaste.utils.platform.get_platform", return_value="linux")
    def test_accessibility_only_checked_on_macos(self, _platform):
        with patch("voxpaste.utils.platform.subprocess.run") as mock_run:
            assert check_accessibility_permissions() is True
        mock_run.assert_not_called()

    @patch("voxpaste.utils.platform.get_platform", return_value="macos")
    def test_accessibility_check_timeout(self, _platform):
        with patch(
            "voxpaste.utils.platform.subprocess.run",
            side_effect=subprocess.TimeoutExpired("osascript", 5),
        ):
            assert check_accessibility_permissions() is False
