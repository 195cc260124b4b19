"""Unit tests for the CLI modules - semantic_archive.cli.ingest and
semantic_archive.cli.search."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

from semantic_archive import main as main_module
from semantic_archive.cli import ingest, search
from semantic_archive.config.loader import load_settings
from semantic_archive.config.settings import Settings
from semantic_archive.models.graph import EntityClass, Neighbor
from semantic_archive.models.job import IngestionResult
from semantic_archive.models.search import MatchType, SearchResult
from semantic_archive.pipeline.progress_tracker import ProgressTracker
from semantic_archive.utils.errors import ClassificationError, JobFailedError


@pytest.fixture(autouse=True)
def _keep_logging_config(monkeypatch: pytest.MonkeyPatch) -> None:
    """Load settings without reconfiguring structlog onto capsys streams."""
    monkeypatch.setattr(main_module, "bootstrap", load_settings)


def _write_config(tmp_path: Path) -> Path:
    config = tmp_path / "config.yaml"
    config.write_text(
        f"db_path: {tmp_path / 'graph.db'}\n"
        f"ingest_path: {tmp_path / 'ingest'}\n"
        f"archive_path: {tmp_path / 'archive.zip'}\n"
        "log_level: WARNING\n",
        encoding="utf-8",
    )
    return config


# ======================================================================
# ingest: parser and discovery
# ======================================================================


class TestIngestParser:
    def test_process_requires_file(self) -> None:
        parser = ingest._build_parser()
        with pytest.raises(SystemExit):
            parser.parse_args(["process"])

    def test_batch_defaults(self) -> None:
        args = ingest._build_parser().parse_args(["batch"])
        assert args.directory is None
        assert args.limit is None
        assert args.config == "config/config.yaml"

    def test_init_db_reset_flag(self) -> None:
        args = ingest._build_parser().parse_args(["--config", "x.yaml", "init-db", "--reset"])
        assert args.reset is True
        assert args.config == "x.yaml"

    def test_no_command_exits_1(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            ingest.main([])
        assert exc_info.value.code == 1

    def test_non_positive_limit_rejected(self) -> None:
        with pytest.raises(SystemExit) as exc_info:
            ingest.main(["batch", "--limit", "0"])
        assert exc_info.value.code == 2


class TestDiscoverFiles:
    def test_filters_and_orders(self, tmp_path: Path) -> None:
        (tmp_path / "b.md").write_text("b", encoding="utf-8")
        (tmp_path / "a.txt").write_text("a", encoding="utf-8")
        (tmp_path / "image.png").write_bytes(b"\x89PNG")
        (tmp_path / ".hidden.md").write_text("h", encoding="utf-8")
        (tmp_path / ".git").mkdir()
        (tmp_path / ".git" / "config.md").write_text("g", encoding="utf-8")
        (tmp_path / "sub").mkdir()
        (tmp_path / "sub" / "c.py").write_text("print()", encoding="utf-8")

        found = ingest._discover_files(tmp_path, Settings(_env_file=None), limit=None)

        assert [p.relative_to(tmp_path).as_posix() for p in found] == [
            "a.txt",
            "b.md",
            "sub/c.py",
        ]

    def test_limit(self, tmp_path: Path) -> None:
        for name in ("a.md", "b.md", "c.md"):
            (tmp_path / name).write_text(name, encoding="utf-8")
        found = ingest._discover_files(tmp_path, Settings(_env_file=None), limit=2)
        assert [p.name for p in found] == ["a.md", "b.md"]


# ======================================================================
# ingest: commands
# ======================================================================


def _fake_application(settings: Settings, process: AsyncMock) -> MagicMock:
    app = MagicMock()
    app.settings = settings
    app.graph_store.initialize = AsyncMock()
    app.progress_tracker = ProgressTracker()
    app.job_queue.process = process
    return app


class TestIngestCommands:
    def test_init_db_creates_database(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _write_config(tmp_path)
        with pytest.raises(SystemExit) as exc_info:
            ingest.main(["--config", str(config), "init-db"])

        assert exc_info.value.code == 0
        assert (tmp_path / "graph.db").exists()
        out = capsys.readouterr().out
        assert "Database ready" in out
        assert "Documents: 0" in out

    def test_process_success(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = _write_config(tmp_path)
        source = tmp_path / "redis.md"
        source.write_text("Redis", encoding="utf-8")
        process = AsyncMock(
            return_value=IngestionResult(
                document_id="abc123",
                title="Redis Notes",
                file_path=str(source),
                entity_count=2,
                relationships_inserted=2,
                archived=True,
            )
        )
        monkeypatch.setattr(
            main_module, "build_application", lambda s: _fake_application(s, process)
        )

        with pytest.raises(SystemExit) as exc_info:
            ingest.main(["--config", str(config), "process", str(source)])

        assert exc_info.value.code == 0
        process.assert_awaited_once_with(str(source))
        out = capsys.readouterr().out
        assert "Completed: Redis Notes" in out
        assert "abc123" in out

    def test_process_failure_exits_1(
        self,
        tmp_path: Path,
        monkeypatch: pytest.MonkeyPatch,
        capsys: pytest.CaptureFixture[str],
    ) -> None:
        config = _write_config(tmp_path)
        source = tmp_path / "bad.md"
        source.write_text("???", encoding="utf-8")
        failure = JobFailedError("failed", "job-queue", job_id="j1")
        failure.__cause__ = ClassificationError("not JSON", "ollama")
        process = AsyncMock(side_effect=failure)
        monkeypatch.setattr(
            main_module, "build_application", lambda s: _fake_application(s, process)
        )

        with pytest.raises(SystemExit) as exc_info:
            ingest.main(["--config", str(config), "process", str(source)])

        assert exc_info.value.code == 1
        assert "[ollama] not JSON" in capsys.readouterr().err

    def test_process_missing_file(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _write_config(tmp_path)
        with pytest.raises(SystemExit) as exc_info:
            ingest.main(["--config", str(config), "process", str(tmp_path / "absent.md")])
        assert exc_info.value.code == 1
        assert "file not found" in capsys.readouterr().err


# ======================================================================
# search
# ======================================================================


class TestSearchArgv:
    def test_bare_query_becomes_query_command(self) -> None:
        assert search._normalize_argv(["redis cache"]) == ["query", "redis cache"]

    def test_bare_query_after_config(self) -> None:
        assert search._normalize_argv(["--config", "c.yaml", "redis"]) == [
            "--config",
            "c.yaml",
            "query",
            "redis",
        ]

    def test_explicit_subcommands_untouched(self) -> None:
        assert search._normalize_argv(["relationships", "Redis"]) == ["relationships", "Redis"]
        assert search._normalize_argv(["query", "x", "--limit", "3"]) == [
            "query",
            "x",
            "--limit",
            "3",
        ]

    def test_parsed_shorthand(self) -> None:
        parser = search._build_parser()
        args = parser.parse_args(search._normalize_argv(["redis", "--limit", "2"]))
        assert args.command == "query"
        assert args.text == "redis"
        assert args.limit == 2


class TestSearchFormatting:
    def test_no_results(self) -> None:
        assert search._format_results("redis", []) == 'No documents found for "redis".'

    def test_results_show_title_score_and_match(self) -> None:
        result = SearchResult(
            document_id="abc",
            content="Redis cache notes",
            metadata={"title": "Redis Notes"},
            score=1 / 61,
            match_type=MatchType.LEXICAL,
            lexical_rank=1,
        )
        text = search._format_results("redis", [result])
        assert "1. Redis Notes" in text
        assert "0.0164 (lexical)" in text
        assert "Redis cache notes" in text

    def test_neighbors(self) -> None:
        neighbors = [
            Neighbor(
                relationship_class="MENTIONS",
                direction="incoming",
                entity_id="abc",
                entity_type="TechSpec",
                entity_class=EntityClass.DOCUMENT,
                metadata={"title": "Redis Notes"},
            )
        ]
        text = search._format_neighbors("Redis", neighbors)
        assert "<- [MENTIONS] Redis Notes (Document: TechSpec)" in text

    def test_missing_database_exits_1(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        config = _write_config(tmp_path)
        with pytest.raises(SystemExit) as exc_info:
            search.main(["--config", str(config), "redis"])
        assert exc_info.value.code == 1
        assert "database not found" in capsys.readouterr().err
