"""Command-line entrypoint for location analyses."""

from __future__ import annotations

import argparse
import json
import os
import sys

from jobs.analyze import main as run_analyze
from jobs.config import MetroArea, Settings, select_metros
from storage.db import connect
from storage.exports import export_runs, runs_dataframe
from storage.housing import load_dataset
from storage.snapshots import SnapshotStore, build_summary


def _format_metro(metro: MetroArea) -> str:
    return (
        f"{metro.key}: name='{metro.name}' centroid=({metro.lat}, {metro.lng}) "
        f"cbsa={metro.cbsa_code} series={metro.laus_series_id}"
    )


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Real-estate location analysis runner")
    subparsers = parser.add_subparsers(dest="command", required=True)

    analyze_parser = subparsers.add_parser(
        "analyze", help="Analyze a location and write its snapshot"
    )
    analyze_parser.add_argument("location", help="Free-text address, city or ZIP code")
    analyze_parser.add_argument(
        "--mode", choices=("point", "region"), default="point", help="Analysis mode"
    )
    analyze_parser.add_argument(
        "--top-n", type=int, default=5, help="Region candidates to keep in region mode"
    )
    analyze_parser.add_argument(
        "--log-level",
        help="Override LOG_LEVEL for this invocation (e.g. DEBUG, INFO)",
    )

    show_parser = subparsers.add_parser("show", help="Print the summary of a stored analysis")
    show_parser.add_argument("slug")
    show_parser.add_argument(
        "--full", action="store_true", help="Print the complete analysis snapshot"
    )

    metros_parser = subparsers.add_parser(
        "list-metros", help="Show metros known to the employment provider"
    )
    metros_parser.add_argument(
        "--metros", nargs="+", metavar="KEY", help="Only these metro keys, in this order"
    )

    regions_parser = subparsers.add_parser(
        "list-regions", help="Show regions of the bulk housing dataset"
    )
    regions_parser.add_argument("--state", help="Two-letter state filter")

    subparsers.add_parser("runs", help="Show recorded runs")

    export_parser = subparsers.add_parser("export", help="Export recorded runs")
    export_parser.add_argument("destination")
    export_parser.add_argument("--format", choices=("csv", "parquet"), default="csv")

    args = parser.parse_args(argv)

    if args.command == "analyze":
        if args.log_level:
            os.environ["LOG_LEVEL"] = args.log_level
        return run_analyze(args.location, mode=args.mode, top_n=args.top_n)

    settings = Settings.from_env()

    if args.command == "show":
        store = SnapshotStore(settings.output_dir)
        try:
            result = store.load(args.slug)
        except FileNotFoundError as exc:
            print(exc, file=sys.stderr)
            return 1
        payload = result.model_dump(mode="json") if args.full else build_summary(result)
        print(json.dumps(payload, indent=2))
        return 0

    if args.command == "list-metros":
        try:
            metros = select_metros(args.metros)
        except KeyError as exc:
            print(f"Unknown metro keys: {exc.args[0]}", file=sys.stderr)
            return 1
        for metro in metros:
            print(_format_metro(metro))
        return 0

    if args.command == "list-regions":
        dataset = load_dataset(settings.housing_data_dir)
        if dataset is None:
            print(f"No housing dataset under {settings.housing_data_dir}", file=sys.stderr)
            return 1
        for region in dataset.regions_in_state(args.state):
            print(region)
        return 0

    if args.command in {"runs", "export"}:
        conn = connect(settings.database_path)
        try:
            if args.command == "runs":
                print(runs_dataframe(conn).to_string(index=False))
            else:
                print(export_runs(conn, args.destination, fmt=args.format))
        finally:
            conn.close()
        return 0

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
