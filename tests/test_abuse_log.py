"""Tests for abuse log sinks."""

from __future__ import annotations

import re
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock

from fastapi.testclient import TestClient

from app.adapters.rate_limit.abuse_log import (
    FileAbuseLogSink,
    NullAbuseSink,
    format_abuse_line,
)
from app.adapters.rate_limit.in_memory import InMemoryBackoffRateLimiter
from app.core.app_factory import create_app
from app.core.config import RateLimitSettings, Settings


def test_format_abuse_line() -> None:
    at = datetime(2024, 5, 1, 12, 30, 0, tzinfo=timezone.utc)

    line = format_abuse_line("rate:anon:127.0.0.1", 3, at=at)

    assert line == "2024-05-01T12:30:00.000Z | rate:anon:127.0.0.1 | offense: 3\n"


def test_format_abuse_line_converts_to_utc() -> None:
    at = datetime(2024, 5, 1, 14, 30, 0, 250000, tzinfo=timezone(timedelta(hours=2)))

    line = format_abuse_line("rate:anon:127.0.0.1", 1, at=at)

    assert line.startswith("2024-05-01T12:30:00.250Z | ")


def test_file_sink_appends_lines_and_creates_directory(tmp_path) -> None:
    path = tmp_path / "nested" / "logs" / "abuse.log"
    sink = FileAbuseLogSink(path)

    sink.record("rate:anon:10.0.0.1", 1)
    sink.record("rate:anon:10.0.0.1", 2)
    sink.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert len(lines) == 2
    assert re.match(r"^\S+ \| rate:anon:10\.0\.0\.1 \| offense: 1$", lines[0])
    assert lines[1].endswith("| offense: 2")


def test_file_sink_swallows_write_errors(tmp_path) -> None:
    # A directory where the log file should be makes open() fail.
    path = tmp_path / "abuse.log"
    path.mkdir()
    sink = FileAbuseLogSink(path)

    sink.record("rate:anon:10.0.0.1", 1)
    sink.close()

    assert path.is_dir()


def test_file_sink_writes_again_after_close(tmp_path) -> None:
    path = tmp_path / "abuse.log"
    sink = FileAbuseLogSink(path)
    sink.record("rate:anon:10.0.0.1", 1)
    sink.close()

    sink.record("rate:anon:10.0.0.1", 2)
    sink.close()

    lines = path.read_text(encoding="utf-8").splitlines()
    assert [line.rsplit(" ", 1)[-1] for line in lines] == ["1", "2"]


def test_file_sink_close_without_records_is_noop(tmp_path) -> None:
    path = tmp_path / "abuse.log"
    sink = FileAbuseLogSink(path)

    sink.close()
    sink.close()

    assert not path.exists()


def test_app_keeps_abuse_log_across_lifespans(tmp_path) -> None:
    path = tmp_path / "abuse.log"
    app = create_app(
        Settings(rate_limit=RateLimitSettings(max_requests=1, abuse_log_enabled=False)),
        abuse_sink=FileAbuseLogSink(path),
        configure_logs=False,
    )

    with TestClient(app) as client:
        assert client.get("/").status_code == 200

    with TestClient(app) as client:
        assert client.get("/").status_code == 429

    content = path.read_text(encoding="utf-8")
    assert "| rate:anon:testclient | offense: 1" in content


def test_limiter_writes_offense_to_file(tmp_path) -> None:
    path = tmp_path / "abuse.log"
    sink = FileAbuseLogSink(path)
    limiter = InMemoryBackoffRateLimiter(max_requests=1, abuse_sink=sink, clock=Mock(return_value=0.0))

    limiter.consume("rate:Bearer abc:10.0.0.9")
    limiter.consume("rate:Bearer abc:10.0.0.9")
    sink.close()

    content = path.read_text(encoding="utf-8")
    assert "| rate:Bearer abc:10.0.0.9 | offense: 1" in content


def test_null_sink_discards() -> None:
    sink = NullAbuseSink()

    assert sink.record("rate:anon:10.0.0.1", 1) is None
    sink.close()
