"""Records exchanged with the review API."""

from dataclasses import dataclass, asdict, field
from typing import Any, Dict, List, Optional


CONFIG_SETTINGS = (
    "shared_buffers",
    "effective_cache_size",
    "maintenance_work_mem",
    "checkpoint_completion_target",
    "wal_buffers",
    "default_statistics_target",
    "random_page_cost",
    "effective_io_concurrency",
    "work_mem",
    "min_wal_size",
    "max_wal_size",
)


def _compact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Drop empty optional values, the way the API expects omitted fields."""
    return {k: v for k, v in data.items() if v not in (None, "", [], {})}


@dataclass(frozen=True)
class Config:
    """PostgreSQL settings sent for analysis. Empty string means not reported."""

    shared_buffers: str = ""
    effective_cache_size: str = ""
    maintenance_work_mem: str = ""
    checkpoint_completion_target: str = ""
    wal_buffers: str = ""
    default_statistics_target: str = ""
    random_page_cost: str = ""
    effective_io_concurrency: str = ""
    work_mem: str = ""
    min_wal_size: str = ""
    max_wal_size: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Config":
        return cls(**{name: str(data.get(name) or "") for name in CONFIG_SETTINGS})


@dataclass(frozen=True)
class ServerInfo:
    """Server identity."""

    version: str = ""
    host: str = "localhost"
    database: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerInfo":
        return cls(
            version=data.get("version", ""),
            host=data.get("host") or "localhost",
            database=data.get("database", ""),
        )


@dataclass(frozen=True)
class ServerData:
    """Everything collected about one server in a run."""

    config: Config
    environment: str
    server_info: ServerInfo

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerData":
        return cls(
            config=Config.from_dict(data.get("config") or {}),
            environment=data.get("environment", ""),
            server_info=ServerInfo.from_dict(data.get("server_info") or {}),
        )


@dataclass
class Recommendation:
    """Configuration recommendation returned by the analyzer."""

    content: str = ""
    criticality: str = ""
    recommendation: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Recommendation":
        return cls(
            content=data.get("content", ""),
            criticality=data.get("criticality", ""),
            recommendation=data.get("recommendation", ""),
        )


@dataclass
class TableInfo:
    name: str
    schema: str = ""
    row_count: int = 0
    indexes: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, **_compact({
            "schema": self.schema,
            "row_count": self.row_count or None,
            "indexes": self.indexes,
        })}


@dataclass
class QueryReviewRequest:
    """A single SQL query sent for review."""

    sql: str
    query_plan: Optional[Any] = None
    tables: List[TableInfo] = field(default_factory=list)
    server_info: Optional[ServerInfo] = None
    thread_id: str = ""
    environment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"sql": self.sql, **_compact({
            "query_plan": self.query_plan,
            "tables": [t.to_dict() for t in self.tables],
            "server_info": asdict(self.server_info) if self.server_info else None,
            "thread_id": self.thread_id,
            "environment": self.environment,
        })}


@dataclass
class BatchReviewRequest:
    queries: List[QueryReviewRequest]
    environment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "queries": [q.to_dict() for q in self.queries],
            **_compact({"environment": self.environment}),
        }


@dataclass
class MigrationReviewRequest:
    sql: str
    environment: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"sql": self.sql, **_compact({"environment": self.environment})}


@dataclass
class QueryReviewResponse:
    overall_score: int = 0
    recommendations: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryReviewResponse":
        return cls(
            overall_score=int(data.get("overall_score") or 0),
            recommendations=list(data.get("recommendations") or []),
            issues=list(data.get("issues") or []),
        )


@dataclass
class BatchReviewResponse:
    results: List[QueryReviewResponse] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BatchReviewResponse":
        return cls(results=[QueryReviewResponse.from_dict(r) for r in data.get("results") or []])


@dataclass
class MigrationReviewResponse:
    overall_score: int = 0
    recommendations: List[str] = field(default_factory=list)
    issues: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MigrationReviewResponse":
        return cls(
            overall_score=int(data.get("overall_score") or 0),
            recommendations=list(data.get("recommendations") or []),
            issues=list(data.get("issues") or []),
            warnings=list(data.get("warnings") or []),
        )


@dataclass(frozen=True)
class SQLFile:
    """A collected SQL file. Titles are unique within one collection."""

    title: str
    content: str
    path: str
    is_migration: bool = False