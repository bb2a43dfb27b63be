"""
Provision destination tables, or ingest local files, from the CLI.

    python -m scripts.provision_schema ensure
    python -m scripts.provision_schema reset --yes
    python -m scripts.provision_schema ingest path/to/202403_Imoveis.csv
"""

from __future__ import annotations

import argparse
import json
import logging
import os
from dataclasses import asdict
from pathlib import Path

from app.services.ingestion_controller import IngestionController, get_ingestion_controller
from ingestion.catalog import default_schema_catalog


def _ensure(controller: IngestionController) -> list[dict[str, object]]:
    results: list[dict[str, object]] = []
    for table_id in default_schema_catalog().table_ids:
        controller.provisioner.ensure(table_id)
        results.append({"table": table_id, "ensured": True})
    return results


def main() -> int:
    parser = argparse.ArgumentParser(description="Destination schema provisioning and local ingestion.")
    subcommands = parser.add_subparsers(dest="command", required=True)
    subcommands.add_parser("ensure", help="Create missing destination tables.")
    reset = subcommands.add_parser("reset", help="Recreate all destination tables and seed segments.")
    reset.add_argument("--yes", action="store_true", help="Confirm that all loaded rows will be discarded.")
    ingest = subcommands.add_parser("ingest", help="Ingest local CSV/XLSX files.")
    ingest.add_argument("paths", nargs="+", type=Path)
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").strip().upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    controller = get_ingestion_controller()
    if args.command == "ensure":
        payload: object = _ensure(controller)
    elif args.command == "reset":
        if not args.yes:
            parser.error("reset discards every loaded row; pass --yes to confirm.")
        payload = asdict(controller.reset_all(caller_is_privileged=True))
    else:
        payload = [
            asdict(controller.ingest(path.read_bytes(), path.name, None))
            for path in args.paths
        ]

    print(json.dumps(payload, indent=2, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
