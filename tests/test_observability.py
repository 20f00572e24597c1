from __future__ import annotations

import json
import logging
from typing import Any

from todoagent.observability import (
    ConsoleLogFormatter,
    Metrics,
    Tracer,
    get_json_logger,
    get_run_context,
    use_run_context,
)


def _parse_json_lines(output: str) -> list[dict[str, Any]]:
    return [json.loads(line) for line in output.strip().splitlines() if line.strip()]


def test_json_logger_redacts_and_formats(capsys: Any) -> None:
    logger = get_json_logger("obs-test")
    logger.setLevel(logging.INFO)
    logger.info(
        "hello",
        extra={
            "event": "tool_call",
            "tool": "add_todo",
            "attributes": {
                "OPENROUTER_API_KEY": "sk-or-abc",
                "token": "XYZ",
                "safe": "ok",
            },
        },
    )

    lines = _parse_json_lines(capsys.readouterr().out)
    assert len(lines) == 1
    rec = lines[0]
    assert rec["msg"] == "hello"
    assert rec["level"] == "info"
    assert rec["logger"] == "obs-test"
    assert rec["event"] == "tool_call"
    assert rec["tool"] == "add_todo"
    attributes = rec["attributes"]
    assert attributes["safe"] == "ok"
    assert attributes["OPENROUTER_API_KEY"] == "[REDACTED]"
    assert attributes["token"] == "[REDACTED]"


def test_json_logger_is_enriched_with_run_context(capsys: Any) -> None:
    logger = get_json_logger("obs-test-ctx")
    logger.setLevel(logging.INFO)
    with use_run_context("run-1", "alice", "TodoAgent"):
        assert get_run_context() == {"run_id": "run-1", "user_id": "alice", "agent": "TodoAgent"}
        logger.info("inside")
    logger.info("outside")
    assert get_run_context() is None

    inside, outside = _parse_json_lines(capsys.readouterr().out)
    assert inside["run_id"] == "run-1"
    assert inside["user_id"] == "alice"
    assert inside["agent"] == "TodoAgent"
    assert "run_id" not in outside


def test_json_logger_records_exception_fields(capsys: Any) -> None:
    logger = get_json_logger("obs-test-exc")
    logger.setLevel(logging.INFO)
    try:
        raise ValueError("bad title")
    except ValueError:
        logger.exception("failed")

    (rec,) = _parse_json_lines(capsys.readouterr().out)
    assert rec["level"] == "error"
    assert rec["err_type"] == "ValueError"
    assert rec["err"] == "bad title"
    assert "Traceback" in rec["stack"]


def test_tracer_spans_and_parent_child(capsys: Any) -> None:
    logger = get_json_logger("obs-test-trace")
    logger.setLevel(logging.DEBUG)
    tracer = Tracer(logger)

    with tracer.span("model.complete", {"iteration": 0}):
        with tracer.span("tool.add_todo", {"user_id": "alice"}):
            pass

    lines = _parse_json_lines(capsys.readouterr().out)
    starts = [d for d in lines if d.get("event") == "span_start"]
    ends = [d for d in lines if d.get("event") == "span_end"]
    assert len(starts) == 2
    assert len(ends) == 2

    parent_start = next(d for d in starts if d.get("name") == "model.complete")
    child_start = next(d for d in starts if d.get("name") == "tool.add_todo")
    assert parent_start["span_id"]
    assert child_start.get("parent_id") == parent_start.get("span_id")
    assert child_start["kv"] == {"user_id": "alice"}

    parent_end = next(d for d in ends if d.get("span_id") == parent_start["span_id"])
    assert parent_end["name"] == "model.complete"
    assert isinstance(parent_end.get("duration_ms"), int | float)


def test_tracer_is_silent_at_info_level(capsys: Any) -> None:
    logger = get_json_logger("obs-test-trace-quiet")
    logger.setLevel(logging.INFO)
    with Tracer(logger).span("quiet"):
        pass
    assert capsys.readouterr().out == ""


def test_console_formatter_summarises_agent_completion() -> None:
    record = logging.LogRecord(
        "todoagent.agent", logging.INFO, __file__, 1, "agent completed", None, None
    )
    record.event = "agent_completed"
    record.kv = {"iterations": 2, "tool_calls": 3}
    record.user_id = "alice-123456789"

    line = ConsoleLogFormatter().format(record)

    assert "INFO todoagent.agent agent_completed" in line
    assert "user=alice-12" in line
    assert "kv.iterations=2 kv.tool_calls=3" in line
    assert line.endswith("agent completed")


def test_metrics_counters_increment_and_snapshot() -> None:
    metrics = Metrics()
    metrics.increment("tool_calls", {"tool": "add_todo"}, 2)
    metrics.increment("tool_calls", {"tool": "add_todo"})
    metrics.increment("tool_calls", {"tool": "list_todos"})

    assert metrics.value("tool_calls", {"tool": "add_todo"}) == 3
    snap = metrics.snapshot()
    entry = next(
        e for e in snap if e["name"] == "tool_calls" and e["labels"].get("tool") == "add_todo"
    )
    assert entry["value"] == 3
    assert len(snap) == 2
