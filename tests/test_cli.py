"""
Tests for the CLI module error handling and commands.
"""

from unittest import mock

import httpx
import pytest

import cli.main
from cli.main import CLIError, build_parser, get_admin_headers, positive_int, safe_json_response


def _response(status_code, json_data=None, text=None):
    request = httpx.Request("GET", "http://localhost:9001/api/sections")
    if json_data is not None:
        return httpx.Response(status_code, json=json_data, request=request)
    return httpx.Response(status_code, text=text or "", request=request)


SECTION = {
    "id": 1,
    "title": "Featured",
    "layout_type": "grid",
    "order": 0,
    "visible": True,
    "video_count": 1,
    "videos": [{"id": 10, "video_id": 7, "order": 0, "title": "", "video": {"title": "Intro"}}],
}


class TestSafeJsonResponse:
    """Tests for safe_json_response."""

    def test_success(self):
        assert safe_json_response(_response(200, {"ok": True})) == {"ok": True}

    def test_error_uses_detail(self):
        with pytest.raises(CLIError, match=r"API error \(409\): Video 7 is already in section 1"):
            safe_json_response(_response(409, {"detail": "Video 7 is already in section 1"}))

    def test_error_without_json(self):
        with pytest.raises(CLIError, match="502"):
            safe_json_response(_response(502, text="Bad Gateway"))

    def test_invalid_json_on_success(self):
        with pytest.raises(CLIError, match="Invalid JSON"):
            safe_json_response(_response(200, text="<html>"))


class TestHelpers:
    """Tests for small CLI helpers."""

    def test_positive_int(self):
        assert positive_int("3") == 3

    def test_positive_int_rejects_zero(self):
        import argparse

        with pytest.raises(argparse.ArgumentTypeError):
            positive_int("0")

    def test_admin_headers_without_secret(self, monkeypatch):
        monkeypatch.setattr(cli.main, "ADMIN_API_SECRET", "")
        assert get_admin_headers() == {}

    def test_admin_headers_with_secret(self, monkeypatch):
        monkeypatch.setattr(cli.main, "ADMIN_API_SECRET", "s3cret")
        assert get_admin_headers() == {"X-Admin-Secret": "s3cret"}


class TestParser:
    """Tests for build_parser."""

    def test_create_section_defaults(self):
        args = build_parser().parse_args(["create-section", "Featured"])
        assert args.title == "Featured"
        assert args.layout == "card"
        assert args.hidden is False
        assert args.func is cli.main.cmd_create_section

    def test_unknown_layout_rejected(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args(["create-section", "X", "--layout", "carousel"])

    def test_reorder_sections_ids(self):
        args = build_parser().parse_args(["reorder-sections", "3", "1", "2"])
        assert args.section_ids == [3, 1, 2]

    def test_command_required(self):
        with pytest.raises(SystemExit):
            build_parser().parse_args([])


class TestCommands:
    """Commands against a mocked admin API."""

    def _run(self, argv, response):
        args = build_parser().parse_args(argv)
        with mock.patch("cli.main.httpx.request", return_value=response) as request:
            args.func(args)
        return request

    def test_create_section(self, capsys):
        request = self._run(["create-section", "Featured", "-l", "grid", "--hidden"], _response(201, SECTION))

        method, url = request.call_args.args
        assert method == "POST"
        assert url.endswith("/api/sections")
        assert request.call_args.kwargs["json"] == {"title": "Featured", "layout_type": "grid", "visible": False}
        assert "Created section 1" in capsys.readouterr().out

    def test_reorder_sections_payload(self):
        request = self._run(["reorder-sections", "2", "1"], _response(200, [SECTION]))
        assert request.call_args.kwargs["json"] == {"sections": [{"id": 2}, {"id": 1}]}

    def test_add_video_prints_section(self, capsys):
        request = self._run(["add-video", "1", "7", "-t", "Intro cut"], _response(201, SECTION))

        assert request.call_args.args[1].endswith("/api/sections/1/videos")
        assert request.call_args.kwargs["json"] == {"video_id": 7, "title": "Intro cut"}
        out = capsys.readouterr().out
        assert "Added video 7 to section 1" in out
        assert "Intro" in out

    def test_sections_table(self, capsys):
        self._run(["sections"], _response(200, [SECTION]))
        out = capsys.readouterr().out
        assert "Featured" in out
        assert "grid" in out

    def test_sections_empty(self, capsys):
        self._run(["sections"], _response(200, []))
        assert "No sections found." in capsys.readouterr().out

    def test_videos_unused_path(self, capsys):
        request = self._run(["videos", "--unused"], _response(200, {"videos": [], "count": 0}))
        assert request.call_args.args[1].endswith("/api/videos/unused")
        assert "No unused videos found." in capsys.readouterr().out

    def test_videos_passes_paging_and_truncates_titles(self, capsys):
        video = {"id": 3, "title": "A" * 60, "is_used": False, "duration_formatted": "2:05"}
        request = self._run(
            ["videos", "-s", "launch", "--limit", "1", "--offset", "2"],
            _response(200, {"videos": [video], "count": 1, "total": 4, "limit": 1, "offset": 2}),
        )

        assert request.call_args.kwargs["params"] == {"limit": 1, "offset": 2, "search": "launch"}
        out = capsys.readouterr().out
        assert "A" * 38 + ".." in out
        assert "A" * 39 not in out
        assert "Showing 1 of 4 (offset 2)" in out

    def test_reconcile_usage(self, capsys):
        self._run(["reconcile-usage"], _response(200, {"status": "ok", "changed": 2}))
        assert "Corrected usage flag on 2 video(s)." in capsys.readouterr().out

    def test_api_error_exits(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            self._run(["delete-section", "9"], _response(404, {"detail": "Section 9 not found"}))
        assert exc_info.value.code == 1
        assert "Section 9 not found" in capsys.readouterr().out

    def test_auth_error_exits(self, capsys):
        with pytest.raises(SystemExit):
            self._run(["sections"], _response(401, {"detail": "Authentication required"}))
        assert "SHOWCASE_ADMIN_API_SECRET" in capsys.readouterr().out

    def test_connection_error_exits(self, capsys):
        args = build_parser().parse_args(["sections"])
        with mock.patch("cli.main.httpx.request", side_effect=httpx.ConnectError("refused")):
            with pytest.raises(SystemExit):
                args.func(args)
        assert "Could not connect" in capsys.readouterr().out
