"""Tests for shared helpers."""

from __future__ import annotations

from datetime import datetime

from romlauncher.utils import expand_placeholders, format_size, sanitize_filename, upload_archive_name


class TestUtils:
    def test_upload_archive_name(self) -> None:
        when = datetime(2024, 5, 1, 18, 30)
        assert upload_archive_name("Zelda: Twilight Princess", when) == "2024-05-01 18h30 - Zelda_ Twilight Princess.zip"

    def test_upload_archive_name_empty(self) -> None:
        assert upload_archive_name("??", datetime(2024, 1, 2, 3, 4)).endswith(" - save.zip")
        assert upload_archive_name("", datetime(2024, 1, 2, 3, 4)) == "2024-01-02 03h04 - save.zip"
        assert upload_archive_name("_ .", datetime(2024, 1, 2, 3, 4)).endswith(" - save.zip")

    def test_expand_placeholders(self) -> None:
        args = expand_placeholders(["-u", "{userDir}", "-e", "{rom}", "{unknown}"], {"rom": "/g.iso", "userDir": "/s"})
        assert args == ["-u", "/s", "-e", "/g.iso", "{unknown}"]

    def test_sanitize_filename(self) -> None:
        assert sanitize_filename('a<b>c') == "a_b_c"

    def test_format_size(self) -> None:
        assert format_size(512) == "512 B"
        assert format_size(1536) == "1.5 KB"
