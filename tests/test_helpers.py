# tests/test_helpers.py
import datetime
import os
from unittest.mock import patch

import pytest

from reltmpl.core.templating.helpers import (
    BUILTIN_HELPERS, abs_helper, dir_helper, format_go_layout, replace_helper,
    time_helper, trimprefix_helper,
)

MOMENT = datetime.datetime(2024, 3, 5, 14, 7, 9, 123456, tzinfo=datetime.timezone.utc)

class TestFormatGoLayout:
    @pytest.mark.parametrize("layout,expected", [
        ("2006-01-02", "2024-03-05"),
        ("2006-01-02T15:04:05Z07:00", "2024-03-05T14:07:09Z"),
        ("20060102", "20240305"),
        ("Jan 2, 2006 at 3:04pm (MST)", "Mar 5, 2024 at 2:07pm (UTC)"),
        ("Monday, 02-Jan-06 15:04:05 MST", "Tuesday, 05-Mar-24 14:07:09 UTC"),
        ("January _2 03PM", "March  5 02PM"),
        ("15:04:05.000", "14:07:09.123"),
        ("2006-01-02T15:04:05-0700", "2024-03-05T14:07:09+0000"),
        ("day 002 of 2006", "day 065 of 2024"),
    ])
    def test_reference_layouts(self, layout, expected):
        assert format_go_layout(MOMENT, layout) == expected

    def test_strftime_layouts_pass_through(self):
        assert format_go_layout(MOMENT, "%Y.%m.%d") == "2024.03.05"

    def test_literal_text_is_kept(self):
        assert format_go_layout(MOMENT, "build-") == "build-"

class TestHelpers:
    def test_replace_argument_order(self):
        assert replace_helper("-", "_", "my-app-v1") == "my_app_v1"
        assert replace_helper("x", "y", "abc") == "abc"

    def test_trimprefix(self):
        assert trimprefix_helper("v1.2.3", "v") == "1.2.3"
        assert trimprefix_helper("1.2.3", "v") == "1.2.3"
        assert trimprefix_helper("vv1", "v") == "v1"
        assert trimprefix_helper("abc", "") == "abc"

    @pytest.mark.parametrize("path,expected", [
        ("dist/app_linux/app", "dist/app_linux"),
        ("app", "."),
        ("", "."),
        ("/app", "/"),
        ("/a/b/", "/a/b"),
        ("a//b", "a"),
    ])
    def test_dir(self, path, expected):
        assert dir_helper(path) == expected

    def test_abs(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert abs_helper("dist/app") == os.path.join(os.getcwd(), "dist", "app")
        assert abs_helper("/already/absolute") == "/already/absolute"

    def test_time_uses_current_utc_time(self):
        with patch("reltmpl.core.templating.helpers.datetime") as mock_datetime:
            mock_datetime.datetime.now.return_value = MOMENT
            assert time_helper("2006-01-02 15:04") == "2024-03-05 14:07"
            mock_datetime.datetime.now.assert_called_once()

    def test_case_and_trim_helpers(self):
        assert BUILTIN_HELPERS["tolower"]("Linux") == "linux"
        assert BUILTIN_HELPERS["toupper"]("amd64") == "AMD64"
        assert BUILTIN_HELPERS["trim"]("  v1  \n") == "v1"

    def test_registered_names(self):
        assert set(BUILTIN_HELPERS) == {"replace", "time", "tolower", "toupper", "trim", "trimprefix", "dir", "abs"}
