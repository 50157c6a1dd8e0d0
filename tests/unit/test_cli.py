"""Unit tests for the content-index command line."""

import logging

import orjson
import pytest

from content_index import cli
from content_index.cli import EXIT_BATCH_FAILURES, EXIT_ERROR, EXIT_OK, build_argument_parser, main


pytestmark = pytest.mark.unit


@pytest.fixture(autouse=True)
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def run(tmp_path, capsys):
    data_dir = tmp_path / "idx"

    def _run(*argv):
        code = main(["--data-dir", str(data_dir), *argv])
        out = capsys.readouterr().out
        return code, orjson.loads(out) if out.strip() else None

    return _run


def test_add_then_search(run):
    assert run("add", "1", '{"title": "batman", "nemesis": {"value": "joker"}}')[0] == EXIT_OK
    assert run("add", "2", '{"title": "robin"}')[0] == EXIT_OK

    code, payload = run("search", "joker robin")

    assert code == EXIT_OK
    assert payload == {
        "query": "joker robin",
        "total": 2,
        "hits": [{"id": 1, "score": 1}, {"id": 2, "score": 1}],
    }


def test_search_with_fields_and_limit(run):
    run("add", "1", '{"title": "batman"}')
    run("add", "2", '{"title": "batman"}')

    _code, payload = run("search", "batman", "--limit", "1", "--with-fields")

    assert payload["total"] == 2
    assert payload["hits"] == [{"id": 1, "score": 1, "fields": {"title": "batman"}}]


def test_string_ids(run):
    run("--string-ids", "add", "007", '{"title": "bond"}')

    assert run("--string-ids", "get", "007")[1] == {"title": "bond"}
    assert run("get", "7")[0] == EXIT_ERROR


def test_update_get_and_delete(run):
    run("add", "1", '{"title": "batman"}')
    run("update", "1", '{"title": "bruce"}')

    assert run("get", "1") == (EXIT_OK, {"title": "bruce"})
    assert run("delete", "1")[0] == EXIT_OK
    assert run("count", "bruce")[1] == {"query": "bruce", "count": 0}


def test_delete_reports_missing_ids(run):
    run("add", "1", '{"title": "batman"}')

    code, payload = run("delete", "1", "2")

    assert code == EXIT_BATCH_FAILURES
    assert [failure["id"] for failure in payload["failures"]] == [2]


def test_bulk_file(run, tmp_path):
    items = tmp_path / "items.json"
    items.write_bytes(
        orjson.dumps(
            {
                "1": {"title": "batman"},
                "2": {"title": "robin"},
                "3": {"title": "catwoman", "cohorts": ["riddler", "penguin"]},
                "4": {"title": 4},
            }
        )
    )

    code, payload = run("bulk", str(items))

    assert code == EXIT_BATCH_FAILURES
    assert payload["indexed"] == 3
    assert payload["failures"][0]["id"] == 4
    assert "title" in payload["failures"][0]["reason"]
    assert run("search", "penguin")[1]["hits"] == [{"id": 3, "score": 1}]


def test_bulk_file_must_be_object(run, tmp_path):
    items = tmp_path / "items.json"
    items.write_bytes(b"[1, 2]")

    assert run("bulk", str(items))[0] == EXIT_ERROR


def test_invalid_json_fields(run):
    assert run("add", "1", "{not json")[0] == EXIT_ERROR


def test_duplicate_add_fails(run):
    run("add", "1", '{"title": "batman"}')
    assert run("add", "1", '{"title": "batman"}')[0] == EXIT_ERROR


def test_checkpoint_and_stats(run):
    run("add", "1", '{"title": "batman"}')

    code, payload = run("checkpoint")
    assert code == EXIT_OK
    assert payload["snapshot"].endswith("snapshot.json")

    _code, stats = run("stats")
    assert stats["documents"] == 1
    assert stats["last_seq"] == 1
    assert stats["log_bytes"] == 0


def test_missing_data_dir():
    assert main(["count", "batman"]) == EXIT_ERROR


def test_invalid_environment(monkeypatch):
    monkeypatch.setenv("INDEX_ANALYZER", "klingon")
    assert main(["count", "batman"]) == EXIT_ERROR


def test_analyzer_choices():
    parser = build_argument_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["--analyzer", "klingon", "stats"])


class TestObservabilitySetup:
    @pytest.fixture
    def calls(self, monkeypatch):
        recorded = {}

        def record(name, result=None):
            def _record(*args, **kwargs):
                recorded[name] = (args, kwargs)
                return result

            return _record

        monkeypatch.setattr(cli, "configure_metrics_exporter", record("metrics_exporter", False))
        monkeypatch.setattr(cli, "init_metrics", record("metrics"))
        monkeypatch.setattr(cli, "init_tracing", record("tracing", "provider"))
        monkeypatch.setattr(cli, "configure_trace_exporter", record("trace_exporter", True))
        return recorded

    def test_collector_enabled(self, run, calls, monkeypatch):
        monkeypatch.setenv("SERVICE_NAME", "cli-test")
        monkeypatch.setenv("OBSERVABILITY", '{"enabled": true, "resource_attributes": {"env": "ci"}}')

        assert run("stats")[0] == EXIT_OK

        assert calls["tracing"][1] == {"service_name": "cli-test", "resource_attributes": {"env": "ci"}}
        collector, provider = calls["trace_exporter"][0]
        assert collector.enabled
        assert provider == "provider"
        assert calls["metrics_exporter"][1] == {"service_name": "cli-test"}

    def test_collector_disabled(self, run, calls):
        assert run("stats")[0] == EXIT_OK

        assert "tracing" not in calls
        assert "trace_exporter" not in calls
        assert calls["metrics"][1]["service_name"] == "content-index"
