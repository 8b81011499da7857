"""Command-line interface for pgmon agent."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from . import __version__
from .collector import MetricsCollector
from .collectors import (
    PGLogsCollector,
    SearchConfig,
    SearchMode,
    ServerInfoCollector,
    SysMetricsCollector,
    collect_sql_files,
)
from .config import AgentConfig, load_config
from .credentials import SecretError, SecretStore
from .db import DatabaseError
from .default_metrics import init_default_metrics
from .metrics import MetricsRegistry
from .models import BatchReviewRequest, MigrationReviewRequest, QueryReviewRequest, SQLFile
from .reports import (
    default_output_path,
    save_pglogs_report,
    save_server_info_report,
    save_sqlfiles_report,
    save_sysmetrics_report,
)
from .server import create_app, run_server
from .transport import ReviewClient, TransportError

logger = logging.getLogger("pgmon-agent")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _secret_store(config: AgentConfig) -> SecretStore:
    return SecretStore(config.vault_addr, config.vault_token, mount=config.vault_mount)


def _require_vault_path(args: argparse.Namespace) -> Optional[str]:
    if not args.vp:
        logger.error("Vault path is required (--vp)")
        return None
    return args.vp


def _split_list(values: Optional[List[str]]) -> List[str]:
    """Accept both ``--files a.sql,b.sql`` and repeated ``--files`` flags."""
    result = []
    for value in values or []:
        result.extend(v.strip() for v in value.split(",") if v.strip())
    return result


def cmd_csi(args: argparse.Namespace, config: AgentConfig) -> int:
    """Collect server info and config, send for analysis."""
    vault_path = _require_vault_path(args)
    if vault_path is None:
        return 1

    try:
        collector = ServerInfoCollector(_secret_store(config), vault_path)
        data = collector.collect_server_data(environment=config.environment)
        logger.info("Collected server info, sending for analysis...")
        logger.debug(f"Server info: {data}")

        if args.dry_run:
            print(json.dumps(data.to_dict(), indent=2))
            return 0

        client = ReviewClient(config.review_api_url, timeout=config.timeout)
        report = client.analyze_config(data, is_scheduler_task=args.st)
        logger.info(f"Received recommendation: {report}")
        return 0

    except (SecretError, DatabaseError) as e:
        logger.error(f"Failed to collect server data: {e}")
        return 1
    except TransportError as e:
        logger.error(f"Failed to analyze config: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        return 1


def cmd_csm(args: argparse.Namespace, config: AgentConfig) -> int:
    """Collect system metrics and server info, send for analysis."""
    vault_path = _require_vault_path(args)
    if vault_path is None:
        return 1

    try:
        metrics = SysMetricsCollector().collect()
        info = ServerInfoCollector(_secret_store(config), vault_path).collect_server_info()

        if args.dry_run:
            payload = {
                "config": metrics.to_dict(),
                "environment": config.environment,
                "server_info": {"version": info.version, "host": info.host, "database": info.database},
            }
            print(json.dumps(payload, indent=2))
            return 0

        client = ReviewClient(config.review_api_url, timeout=config.timeout)
        report = client.analyze_system_metrics(metrics, info, config.environment, is_scheduler_task=args.st)
        logger.info(f"Received recommendation: {report}")
        return 0

    except (SecretError, DatabaseError) as e:
        logger.error(f"Failed to collect server info: {e}")
        return 1
    except TransportError as e:
        logger.error(f"Failed to analyze system metrics: {e}")
        return 1
    except Exception as e:
        logger.error(f"Unexpected error: {e}")
        return 1


def _search_config(args: argparse.Namespace) -> SearchConfig:
    return SearchConfig(
        root_path=args.dir,
        mode=SearchMode(args.mode),
        migrations_path=args.mp or "",
        specific_file_names=_split_list(args.files),
        enable_ignore_list=args.enable_ignore,
        ignore_files=_split_list(args.ignore),
    )


def send_sql_files(client: ReviewClient, files: List[SQLFile], environment: str) -> None:
    """Review ordinary files as one batch and migrations one by one."""
    queries = [f for f in files if not f.is_migration]
    migrations = [f for f in files if f.is_migration]

    if queries:
        batch = BatchReviewRequest(
            queries=[
                QueryReviewRequest(sql=f.content, thread_id=f.title, environment=environment)
                for f in queries
            ],
            environment=environment,
        )
        response = client.review_batch_queries(batch)
        logger.info(f"Batch review response: {response}")

    for f in migrations:
        response = client.review_migration(MigrationReviewRequest(sql=f.content, environment=environment))
        logger.info(f"Migration {f.title} review response: {response}")


def cmd_csf(args: argparse.Namespace, config: AgentConfig) -> int:
    """Collect SQL files and optionally send them for review."""
    try:
        files = collect_sql_files(_search_config(args))
        if not files:
            logger.info("No SQL files found")
            return 0

        logger.info(f"Found {len(files)} SQL files")
        for f in files:
            logger.info(f"- {f.path} as {f.title} (migration: {f.is_migration})")

        if args.send:
            client = ReviewClient(config.review_api_url, timeout=config.timeout)
            send_sql_files(client, files, config.environment)
        return 0

    except TransportError as e:
        logger.error(f"Failed to review SQL files: {e}")
        return 1
    except Exception as e:
        logger.error(f"Failed to collect SQL files: {e}")
        return 1


def cmd_collect(args: argparse.Namespace, config: AgentConfig) -> int:
    """Collect one kind of data into a text report."""
    kind = args.kind
    output = args.output or default_output_path(kind)

    try:
        if kind == "sysmetrics":
            metrics = SysMetricsCollector().collect()
            logger.info(
                f"Collected system metrics: load ratio {metrics.cpu_load:.2f}, "
                f"RAM: {metrics.ram_used // (1024 * 1024)} MB used"
            )
            save_sysmetrics_report(metrics, output)

        elif kind == "pglogs":
            vault_path = _require_vault_path(args)
            if vault_path is None:
                return 1
            collector = PGLogsCollector(_secret_store(config), vault_path, log_dir=config.log_path)
            logs = collector.collect(args.lgt)
            logger.info(f"Collected PostgreSQL logs for last {args.lgt} seconds")
            save_pglogs_report(logs, output)

        elif kind == "serverinfo":
            vault_path = _require_vault_path(args)
            if vault_path is None:
                return 1
            data = ServerInfoCollector(_secret_store(config), vault_path).collect_server_data(
                environment=config.environment
            )
            logger.info(f"Collected server info: {data.server_info}")
            save_server_info_report(data, output)

        else:
            files = collect_sql_files(SearchConfig(root_path=args.dir))
            logger.info(f"Collected {len(files)} SQL files")
            save_sqlfiles_report(files, output)

        return 0

    except Exception as e:
        logger.error(f"Failed to collect {kind}: {e}")
        return 1


def cmd_serve(args: argparse.Namespace, config: AgentConfig) -> int:
    """Run the collector HTTP server."""
    registry = MetricsRegistry()
    init_default_metrics(registry)
    collector = MetricsCollector(_secret_store(config), registry)
    app = create_app(collector, registry, sysmetrics=SysMetricsCollector())

    try:
        run_server(app, args.port or config.port, log_level=config.log_level)
    except Exception as e:
        logger.error(f"Server failed: {e}")
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pgmon",
        description="pgmon - PostgreSQL monitor agent",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--version", action="version", version=f"pgmon-agent {__version__}")
    parser.add_argument("--env-file", help="Load settings from this .env file")

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    csi = subparsers.add_parser("csi", help="Collect server info and config, send for analysis")
    csi.add_argument("--vp", help="Vault path of the database credentials (e.g. db/app1)")
    csi.add_argument("--st", action="store_true", help="Scheduled (unattended) run")
    csi.add_argument("--dry-run", action="store_true", help="Print the payload instead of sending it")

    csm = subparsers.add_parser("csm", help="Collect server info and system metrics, send for analysis")
    csm.add_argument("--vp", help="Vault path of the database credentials")
    csm.add_argument("--st", action="store_true", help="Scheduled (unattended) run")
    csm.add_argument("--dry-run", action="store_true", help="Print the payload instead of sending it")

    csf = subparsers.add_parser("csf", help="Collect SQL files and send for review")
    csf.add_argument("--dir", default=".", help="Directory to scan")
    csf.add_argument("--mode", default="all", choices=[m.value for m in SearchMode],
                     help="Search mode")
    csf.add_argument("--mp", help="Migrations path (used with --mode=migrations)")
    csf.add_argument("--files", action="append", help="File names to collect (used with --mode=specific)")
    csf.add_argument("--enable-ignore", action="store_true", help="Enable the ignore list")
    csf.add_argument("--ignore", action="append", help="File names to ignore")
    csf.add_argument("--send", action="store_true", help="Send the files to the review API")

    collect = subparsers.add_parser("collect", help="Collect data into a text report")
    collect.add_argument("kind", choices=["sysmetrics", "pglogs", "serverinfo", "sqlfiles"])
    collect.add_argument("--output", help="Output file (default: <kind>_<timestamp>.txt)")
    collect.add_argument("--vp", help="Vault path of the database credentials (pglogs, serverinfo)")
    collect.add_argument("--lgt", type=int, default=60, help="Log time window in seconds (pglogs)")
    collect.add_argument("--dir", default=".", help="Directory to scan (sqlfiles)")

    serve = subparsers.add_parser("serve", help="Run the collector HTTP server")
    serve.add_argument("--port", type=int, help="Listen port (default: $PORT or 8080)")

    return parser


COMMANDS = {
    "csi": cmd_csi,
    "csm": cmd_csm,
    "csf": cmd_csf,
    "collect": cmd_collect,
    "serve": cmd_serve,
}


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    try:
        config = load_config(args.env_file)
    except ValueError as e:
        setup_logging()
        logger.error(f"Failed to load config: {e}")
        return 1

    setup_logging(config.log_level)
    return COMMANDS[args.command](args, config)


if __name__ == "__main__":
    sys.exit(main())
