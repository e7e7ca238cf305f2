"""Tests for the command-line interface."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from podcast_search import cli
from podcast_search.core.normalizer import normalize

from tests.conftest import make_episode


@pytest.fixture
def seeded_ctx(ctx, sample_episodes, sample_segments):
    ctx.store.insert_episodes(sample_episodes)
    ctx.store.insert_transcripts([normalize(sample_episodes[0].id, sample_segments)])
    return ctx


def _main(ctx, argv):
    with patch("podcast_search.cli.open_context", return_value=ctx):
        cli.main(argv)


class TestParser:

    def test_search_episode_arguments(self):
        args = cli.build_parser().parse_args(["search", "episode", "248", "caf+e"])
        assert (args.kind, args.token, args.pattern) == ("episode", "248", "caf+e")

    def test_transcribe_no_import(self):
        assert cli.build_parser().parse_args(["transcribe", "--no-import"]).no_import is True

    def test_import_show(self):
        assert cli.build_parser().parse_args(["import"]).show is None
        assert cli.build_parser().parse_args(["import", "--show", "777"]).show == "777"

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestSearchCommands:

    def test_meta(self, seeded_ctx, capsys):
        _main(seeded_ctx, ["search", "meta", "estate"])
        out, err = capsys.readouterr()
        assert out == "56245700\tPuntata 249 - Speciale estate\n"
        assert "1 result(s)" in err

    def test_transcripts(self, seeded_ctx, capsys):
        _main(seeded_ctx, ["search", "transcripts", "hello"])
        assert capsys.readouterr().out.startswith("56245683\t")

    def test_episode(self, seeded_ctx, capsys):
        _main(seeded_ctx, ["search", "episode", "248", "world"])
        out, err = capsys.readouterr()
        assert out == "0:00:01-0:00:02\tHello World, café. Fin.\n"
        assert "1 match(es)" in err

    def test_error_exits_1(self, seeded_ctx, capsys):
        with pytest.raises(SystemExit) as excinfo:
            _main(seeded_ctx, ["search", "meta", "nothing here"])
        assert excinfo.value.code == 1
        assert "Error: No results found." in capsys.readouterr().err


class TestBatchCommands:

    def test_import_passes_show(self, ctx, capsys):
        calls = []

        async def fake_import(ctx, client, show_id=None):
            calls.append(show_id)
            return [make_episode(56245800, "Puntata 251")]

        with patch("podcast_search.cli.import_episodes", new=fake_import):
            _main(ctx, ["import", "--show", "777"])
        out, err = capsys.readouterr()
        assert calls == ["777"]
        assert out == "56245800\tPuntata 251\n"
        assert "Imported 1 new episode(s)" in err

    def test_transcribe(self, ctx, capsys):
        async def fake_batch(ctx, import_first=True):
            assert import_first is False
            return [normalize(7, [])]

        with patch("podcast_search.cli.transcribe_missing", new=fake_batch):
            _main(ctx, ["transcribe", "--no-import"])
        out, err = capsys.readouterr()
        assert out == "7\n"
        assert "Stored 1 new transcript(s)" in err


@pytest.mark.parametrize("ms, text", [(0, "0:00:00"), (61_999, "0:01:01"), (3_723_000, "1:02:03")])
def test_format_ms(ms, text):
    assert cli.format_ms(ms) == text
