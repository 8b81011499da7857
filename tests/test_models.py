import json

from pgmon_agent.models import (
    BatchReviewRequest,
    Config,
    MigrationReviewRequest,
    QueryReviewRequest,
    ServerData,
    ServerInfo,
    TableInfo,
)


def test_server_data_json_round_trip():
    data = ServerData(
        config=Config(shared_buffers="128MB", work_mem="4MB"),
        environment="production",
        server_info=ServerInfo(version="PostgreSQL 16.2", host="10.0.0.5", database="app"),
    )

    decoded = ServerData.from_dict(json.loads(json.dumps(data.to_dict())))

    assert decoded == data


def test_server_data_keys():
    data = ServerData(config=Config(), environment="qa", server_info=ServerInfo())

    as_dict = data.to_dict()

    assert set(as_dict) == {"config", "environment", "server_info"}
    assert set(as_dict["server_info"]) == {"version", "host", "database"}
    assert as_dict["server_info"]["host"] == "localhost"
    assert len(as_dict["config"]) == 11


def test_server_info_empty_host_means_localhost():
    assert ServerInfo.from_dict({"version": "16", "host": "", "database": "app"}).host == "localhost"


def test_query_review_request_omits_empty_fields():
    request = QueryReviewRequest(sql="SELECT 1")
    assert request.to_dict() == {"sql": "SELECT 1"}

    request = QueryReviewRequest(
        sql="SELECT * FROM t",
        tables=[TableInfo(name="t", row_count=10)],
        thread_id="thread-1",
        environment="staging",
    )
    assert request.to_dict() == {
        "sql": "SELECT * FROM t",
        "tables": [{"name": "t", "row_count": 10}],
        "thread_id": "thread-1",
        "environment": "staging",
    }


def test_batch_and_migration_requests():
    batch = BatchReviewRequest(queries=[QueryReviewRequest(sql="SELECT 1")])
    assert batch.to_dict() == {"queries": [{"sql": "SELECT 1"}]}

    migration = MigrationReviewRequest(sql="ALTER TABLE t ADD c int", environment="prod")
    assert migration.to_dict() == {"sql": "ALTER TABLE t ADD c int", "environment": "prod"}
