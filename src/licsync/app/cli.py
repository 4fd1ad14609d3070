# src/licsync/app/cli.py
"""licsync command line.

    licsync skus [--available] [--plans]
    licsync assign INPUT... --sku E5 [--remove-sku E3] [--disable-plan TEAMS1] [--preserve-disabled]
    licsync provision users.csv --sku E3 [--disable-plan ...] [--usage-location BE]
"""
from __future__ import annotations

import argparse
import sys
from typing import List, Optional

from licsync.app.orchestrator import (
    AssignmentRequest, Orchestrator, ProvisioningRequest, RunAbortedError,
)
from licsync.config.loader import (
    ConfigError, get_credentials, get_provisioning_config, get_retry_config, get_run_config,
)
from licsync.core.auth import AuthError, token_provider
from licsync.core.catalog import Catalog
from licsync.core.credentials import CredentialPolicy
from licsync.core.directory import GraphDirectory
from licsync.core.graph_client import GraphClient
from licsync.core.logging_utils import get_logger, setup_logging
from licsync.core.selector import StaticSelector
from licsync.http.errors import HttpError, NetworkError
from licsync.http.throttle import RetryPolicy
from licsync.report.aggregator import Aggregator
from licsync.report.generator import (
    catalog_rows, export_report, format_table, print_rows, print_summary,
)

EXIT_OK = 0
EXIT_GENERIC_ERROR = 1
EXIT_CONFIG_ERROR = 2
EXIT_ABORTED = 3
EXIT_NETWORK_ERROR = 4
EXIT_PRINCIPAL_FAILED = 5

log = get_logger(__name__)


def _directory(args) -> GraphDirectory:
    creds = get_credentials()
    graph = GraphClient.from_config(token_provider(creds))
    prov = get_provisioning_config()
    return GraphDirectory(graph, force_change_password=prov["force_change_password"])


def _orchestrator(args, directory) -> Orchestrator:
    retry = get_retry_config()
    run = get_run_config()
    return Orchestrator(
        directory,
        StaticSelector(args.sku or [], args.disable_plan or []),
        policy=RetryPolicy(attempts=retry["attempts"], delay_seconds=retry["delay_seconds"]),
        max_workers=args.workers or run["max_workers"],
    )


def _finish(args, agg: Aggregator, catalog: Optional[Catalog]) -> int:
    rows = agg.to_records(catalog)
    print_rows(rows, args.format)
    print_summary(agg.counts(), agg.warnings)
    if args.report:
        export_report(rows, args.report)
    return EXIT_PRINCIPAL_FAILED if agg.any_failed else EXIT_OK


def cmd_skus(args) -> int:
    directory = _directory(args)
    catalog = Catalog.from_graph(directory.fetch_skus())
    skus = catalog.available() if args.available else catalog.skus
    rows = catalog_rows(skus, with_plans=args.plans)
    cols = ["skuPartNumber", "skuId", "enabled", "consumed", "available"] + (["plans"] if args.plans else [])
    print(format_table(rows, cols))
    return EXIT_OK


def cmd_assign(args) -> int:
    directory = _directory(args)
    orch = _orchestrator(args, directory)
    agg = orch.run_assignment(AssignmentRequest(
        inputs=args.inputs,
        remove_skus=args.remove_sku or [],
        preserve_disabled=args.preserve_disabled,
        dry_run=args.dry_run,
    ))
    return _finish(args, agg, orch.catalog)


def cmd_provision(args) -> int:
    prov = get_provisioning_config()
    directory = _directory(args)
    orch = _orchestrator(args, directory)
    credentials = CredentialPolicy(
        unique_per_user=not args.shared_password and prov["unique_password_per_user"],
        length=prov["password_length"],
    )
    agg = orch.run_provisioning(
        ProvisioningRequest(
            source=args.source,
            usage_location=(args.usage_location or prov["usage_location"]).upper(),
            dry_run=args.dry_run,
        ),
        credentials,
    )
    if not args.report and not args.dry_run:
        log.warning("no --report given: generated credentials are not saved anywhere")
    return _finish(args, agg, orch.catalog)


def _add_run_options(sp: argparse.ArgumentParser) -> None:
    sp.add_argument("--sku", action="append", metavar="TOKEN",
                    help="Target SKU (part number or skuId); repeatable")
    sp.add_argument("--disable-plan", action="append", metavar="TOKEN",
                    help="Service plan to disable (name or id) within each target SKU; repeatable")
    sp.add_argument("--dry-run", action="store_true", help="Compute plans without changing anything")
    sp.add_argument("--report", help="Write the per-principal report (.csv or .json)")
    sp.add_argument("--format", choices=["table", "json"], default="table", help="Console output format")
    sp.add_argument("--workers", type=int, default=0, help="Parallel principals (default from config: 1)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="licsync", description="Reconcile Microsoft 365 license assignments")
    parser.add_argument("--log-level", default=None, help="Console log level (default INFO)")
    parser.add_argument("--log-file", default=None, help="Also write a DEBUG log to this file")

    sub = parser.add_subparsers(dest="command", required=True)

    sp = sub.add_parser("skus", help="List subscribed SKUs")
    sp.add_argument("--available", action="store_true", help="Only SKUs with free units")
    sp.add_argument("--plans", action="store_true", help="Show service plan names")
    sp.set_defaults(func=cmd_skus)

    sp = sub.add_parser("assign", help="Reconcile licenses of existing users")
    sp.add_argument("inputs", nargs="+", help="User principal names and/or CSV files")
    sp.add_argument("--remove-sku", action="append", metavar="TOKEN",
                    help="SKU to remove when held (upgrade/migration); repeatable")
    sp.add_argument("--preserve-disabled", action="store_true",
                    help="Keep plans the user has disabled today, where the target SKU has them")
    _add_run_options(sp)
    sp.set_defaults(func=cmd_assign)

    sp = sub.add_parser("provision", help="Create users from a CSV and license them")
    sp.add_argument("source", help="CSV with at least a UserPrincipalName column")
    sp.add_argument("--usage-location", default="", help="Default usageLocation (ISO country code)")
    sp.add_argument("--shared-password", action="store_true",
                    help="Use one generated password for every created user")
    _add_run_options(sp)
    sp.set_defaults(func=cmd_provision)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_level, log_file=args.log_file)
    try:
        return args.func(args)
    except ConfigError as exc:
        log.error("Configuration error: %s", exc)
        return EXIT_CONFIG_ERROR
    except AuthError as exc:
        log.error("Authentication failed (%s): %s. %s", exc.code, exc, exc.hint)
        return EXIT_CONFIG_ERROR
    except RunAbortedError as exc:
        log.error("Run aborted: %s", exc)
        return EXIT_ABORTED
    except NetworkError as exc:
        log.error("Network error: %s", exc)
        return EXIT_NETWORK_ERROR
    except HttpError as exc:
        log.error("Graph error: %s", exc.detail())
        return EXIT_GENERIC_ERROR
    except Exception as exc:  # pragma: no cover
        log.error("Unexpected error: %s", exc, exc_info=True)
        return EXIT_GENERIC_ERROR


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
