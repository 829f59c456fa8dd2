"""Entry point — python -m solr_exporter."""

from __future__ import annotations

import argparse
import asyncio
import sys

from solr_exporter.config.settings import Settings, load_config, parse_listen_address


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="solr-exporter",
        description="Prometheus exporter for Apache Solr",
    )
    parser.add_argument(
        "-c", "--config",
        help="Path to configuration YAML file",
        default=None,
    )
    parser.add_argument("--solr-address", help="URI on which to scrape Solr (e.g. http://localhost:8983)")
    parser.add_argument("--solr-context-path", help="Solr webapp context path (e.g. /solr)")
    parser.add_argument("--solr-timeout", type=float, help="Timeout for requests to Solr, in seconds")
    parser.add_argument("--excluded-core", help="Regex of cores to exclude from scraping")
    parser.add_argument(
        "--ignore-core", action="append", default=None, metavar="CORE",
        help="Core name to skip; may be repeated",
    )
    parser.add_argument("--listen-address", help="host:port to expose metrics on (default :9231)")
    parser.add_argument("--telemetry-path", help="Path under which to expose metrics")
    parser.add_argument("--enable-ping", action="store_true", help="Export solr_ping per core")
    parser.add_argument("--enable-jvm", action="store_true", help="Export solr_jvm_* metrics")
    parser.add_argument(
        "--enable-admin-metrics", action="store_true",
        help="Export solr_metrics_* from /admin/metrics",
    )
    parser.add_argument("--disable-ping", action="store_true", help="Do not export solr_ping")
    parser.add_argument(
        "--disable-admin-metrics", action="store_true",
        help="Do not query /admin/metrics for solr_metrics_*",
    )
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Layer command-line flags over the loaded configuration."""
    data = settings.model_dump()
    solr, web, collectors = data["solr"], data["web"], data["collectors"]

    if args.solr_address is not None:
        solr["address"] = args.solr_address
    if args.solr_context_path is not None:
        solr["context_path"] = args.solr_context_path
    if args.solr_timeout is not None:
        solr["timeout"] = args.solr_timeout
    if args.excluded_core is not None:
        solr["excluded_core"] = args.excluded_core
    if args.ignore_core:
        solr["ignored_cores"] = solr["ignored_cores"] + args.ignore_core

    if args.listen_address is not None:
        web["host"], web["port"] = parse_listen_address(args.listen_address)
    if args.telemetry_path is not None:
        web["telemetry_path"] = args.telemetry_path

    collectors["ping"] = collectors["ping"] or args.enable_ping
    collectors["jvm"] = collectors["jvm"] or args.enable_jvm
    collectors["admin_metrics"] = collectors["admin_metrics"] or args.enable_admin_metrics
    if args.disable_ping:
        collectors["ping"] = False
    if args.disable_admin_metrics:
        collectors["admin_metrics"] = False

    if args.log_level is not None:
        data["logging"]["level"] = args.log_level

    return Settings.model_validate(data)


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        settings = apply_overrides(load_config(args.config), args)
    except ValueError as exc:
        parser.error(str(exc))

    from solr_exporter.app import Application

    app = Application(settings=settings)
    try:
        asyncio.run(app.start())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    sys.exit(main())
