import json

import pytest

from pgmon_agent import cli
from pgmon_agent.models import Config, ServerData, ServerInfo, SQLFile


@pytest.fixture(autouse=True)
def workdir(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    return tmp_path


class FakeServerInfoCollector:
    def __init__(self, secret_store, secret_path):
        self.secret_path = secret_path

    def collect_server_data(self, environment=None):
        return ServerData(Config(work_mem="4MB"), environment, ServerInfo("PostgreSQL 16.2", "10.0.0.5", "app"))


class FakeReviewClient:
    def __init__(self):
        self.batches = []
        self.migrations = []

    def review_batch_queries(self, request):
        self.batches.append(request)
        return "batch-ok"

    def review_migration(self, request):
        self.migrations.append(request)
        return "migration-ok"


def test_no_command_prints_help():
    assert cli.main([]) == 1


@pytest.mark.parametrize("argv", [["csi"], ["csm"], ["collect", "pglogs"], ["collect", "serverinfo"]])
def test_vault_path_is_required(argv):
    assert cli.main(argv) == 1


def test_csi_dry_run_prints_payload(monkeypatch, capsys):
    monkeypatch.setattr(cli, "ServerInfoCollector", FakeServerInfoCollector)

    assert cli.main(["csi", "--vp", "db/app1", "--dry-run"]) == 0

    payload = json.loads(capsys.readouterr().out)
    assert payload["config"]["work_mem"] == "4MB"
    assert payload["server_info"]["host"] == "10.0.0.5"


def test_collect_sqlfiles_writes_report(workdir):
    (workdir / "q.sql").write_text("SELECT 1;")

    assert cli.main(["collect", "sqlfiles", "--output", "out/sql.txt"]) == 0

    assert "-- q.sql" in (workdir / "out" / "sql.txt").read_text()


def test_collect_sysmetrics_default_output(workdir):
    assert cli.main(["collect", "sysmetrics"]) == 0

    reports = list(workdir.glob("sysmetrics_*.txt"))
    assert len(reports) == 1


def test_csf_missing_dir_fails(workdir):
    assert cli.main(["csf", "--dir", str(workdir / "missing")]) == 1


def test_send_sql_files_batches_queries_and_sends_migrations_one_by_one():
    client = FakeReviewClient()
    files = [
        SQLFile("a.sql", "SELECT 1;", "/r/a.sql"),
        SQLFile("b.sql", "SELECT 2;", "/r/b.sql"),
        SQLFile("001.sql", "CREATE TABLE t();", "/r/migrations/001.sql", is_migration=True),
        SQLFile("002.sql", "DROP TABLE t;", "/r/migrations/002.sql", is_migration=True),
    ]

    cli.send_sql_files(client, files, "staging")

    assert len(client.batches) == 1
    assert [q.sql for q in client.batches[0].queries] == ["SELECT 1;", "SELECT 2;"]
    assert [q.thread_id for q in client.batches[0].queries] == ["a.sql", "b.sql"]
    assert [m.sql for m in client.migrations] == ["CREATE TABLE t();", "DROP TABLE t;"]


def test_split_list_accepts_commas_and_repeats():
    assert cli._split_list(["a.sql,b.sql", " c.sql "]) == ["a.sql", "b.sql", "c.sql"]
    assert cli._split_list(None) == []
