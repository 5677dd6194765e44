#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys

from dotenv import load_dotenv

from valr_dca.config import load_policy
from valr_dca.errors import ConfigurationError, RunAborted
from valr_dca.log import get_logger, setup_logging
from valr_dca.orchestrator import DcaRunner
from valr_dca.settings import Settings
from valr_dca.valr_client import ValrClient


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Scheduled VALR dollar-cost-averaging run")
    parser.add_argument(
        "--force",
        action="store_true",
        help="Run even if the current UTC hour is not in DCA_EXECUTION_HOURS (manual trigger)",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--dry-run", dest="dry_run", action="store_true", default=None, help="Never submit orders")
    mode.add_argument("--live", dest="dry_run", action="store_false", help="Submit real orders (overrides DRY_RUN)")
    parser.add_argument("--log-json", action="store_true", help="Emit JSON log lines")
    return parser.parse_args()


def main() -> int:
    load_dotenv()
    args = parse_args()
    settings = Settings()
    setup_logging(settings.log_level, json=args.log_json or settings.log_json)
    logger = get_logger("run_dca")

    try:
        # Fail fast before building a client; the runner reloads per run anyway.
        load_policy()
        client = ValrClient.from_settings(settings, dry_run=args.dry_run)
        report = DcaRunner(client).run(force=args.force)
    except ConfigurationError as exc:
        logger.error("dca_config_error", error=str(exc))
        return 1
    except RunAborted as exc:
        logger.error("dca_run_aborted", stage=exc.stage, error=str(exc))
        return 2

    output = report.to_dict()
    output["dry_run"] = client.dry_run
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
