"""Tests for CLI subcommands run against a context wired to fakes."""

from unittest.mock import patch

import pytest

from tunemux.cli import build_parser, run
from tunemux.context import AppContext
from tunemux.core.settings import MemorySettingsStore


def invoke(ctx, *argv: str) -> tuple[int, str]:
    ctx.console.file.seek(0)
    ctx.console.file.truncate()
    code = run(build_parser().parse_args(list(argv)), ctx)
    return code, ctx.console.file.getvalue()


class TestParser:
    def test_subcommand_required(self) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args([])

    def test_play_defaults(self) -> None:
        args = build_parser().parse_args(["play", "alpha"])
        assert args.query == "alpha"
        assert args.number == 1


class TestLocalCommands:
    """Tests for listing and hiding local tracks."""

    def test_local_lists_tracks(self, ctx) -> None:
        code, out = invoke(ctx, "local")
        assert code == 0
        assert "Alpha" in out and "Gamma" in out

    def test_hide_then_list(self, ctx) -> None:
        """Test hidden tracks drop out of the list but show with --all."""
        invoke(ctx, "hide", "102")

        _, out = invoke(ctx, "local")
        assert "Beta" not in out

        _, out = invoke(ctx, "local", "--all")
        assert "Beta (hidden)" in out

    def test_local_query(self, ctx) -> None:
        _, out = invoke(ctx, "local", "beta")
        assert "Beta" in out
        assert "Alpha" not in out


class TestSearchCommand:
    def test_search_requires_online(self, ctx) -> None:
        """Test searching with online disabled explains how to enable it."""
        code, out = invoke(ctx, "search", "anything")
        assert code == 1
        assert "tunemux online on" in out


class TestErrors:
    """Tests for user errors being reported instead of raised."""

    def test_bad_source_url(self, ctx) -> None:
        code, out = invoke(ctx, "sources", "add", "kuwo", "Mirror", "not-a-url")
        assert code == 1
        assert "Error" in out

    def test_unknown_provider(self, ctx) -> None:
        code, out = invoke(ctx, "sources", "select", "spotify", "x")
        assert code == 1
        assert "Unknown provider" in out

    def test_favorites_cannot_be_deleted(self, ctx) -> None:
        code, out = invoke(ctx, "playlist", "delete", "favorites")
        assert code == 1
        assert "cannot be deleted" in out

    def test_missing_playlist(self, ctx) -> None:
        code, out = invoke(ctx, "playlist", "show", "nope")
        assert code == 1
        assert "Playlist not found" in out


class TestPlaylistCommands:
    def test_create_then_list(self, ctx) -> None:
        assert invoke(ctx, "playlist", "create", "Road Trip")[0] == 0
        code, out = invoke(ctx, "playlist", "list")
        assert code == 0
        assert "Road Trip" in out
        assert "Favorites" in out

    def test_add_and_show(self, ctx) -> None:
        """Test a local match is added and shown."""
        invoke(ctx, "playlist", "create", "Mix")
        code, _ = invoke(ctx, "playlist", "add", "mix", "gamma")
        assert code == 0

        _, out = invoke(ctx, "playlist", "show", "Mix")
        assert "Gamma" in out
        assert "Alpha" not in out


class TestMpvCheck:
    """Tests for reporting a missing mpv before playback starts."""

    @pytest.fixture
    def mpv_ctx(self, config, loop, fake_http, ctx):
        context = AppContext.create(
            config,
            settings=MemorySettingsStore(),
            loop=loop,
            http=fake_http,
            console=ctx.console,
        )
        yield context
        context.engine.release()

    def test_play_without_mpv(self, mpv_ctx) -> None:
        with patch("tunemux.cli.check_mpv_available", return_value=False):
            code, out = invoke(mpv_ctx, "play")
        assert code == 1
        assert "mpv was not found" in out

    def test_playlist_play_without_mpv(self, mpv_ctx) -> None:
        with patch("tunemux.cli.check_mpv_available", return_value=False):
            code, out = invoke(mpv_ctx, "playlist", "play", "favorites")
        assert code == 1
        assert "mpv was not found" in out

    def test_fake_engine_skips_check(self, ctx) -> None:
        """Test the check only applies to the mpv engine."""
        with patch("tunemux.cli.check_mpv_available") as check:
            invoke(ctx, "playlist", "play", "favorites")
        check.assert_not_called()
