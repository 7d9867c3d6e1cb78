"""High-level CLI for the Campo field insight pipeline."""

from __future__ import annotations

import argparse
import traceback
from datetime import datetime
from pathlib import Path
from typing import Sequence

from engine.distill_insights import distill_field
from engine.series import as_date
from agent.insight_engine import build_insights


LOG_FILE = Path("logs/field_runs.log")


def _log_run(field: str, stages: Sequence[str], success: bool, status_message: str) -> None:
    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now()
    outcome = "SUCCESS" if success else "FAILURE"
    with LOG_FILE.open("a", encoding="utf-8") as log_file:
        log_file.write(f"{timestamp} — {field} [{'+'.join(stages)}] {outcome}: {status_message}\n")


def main(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Run the field insight pipeline.")
    parser.add_argument("--field", required=True, help="Field slug (e.g. demo_bologna_wheat)")
    parser.add_argument("--distill", action="store_true", help="Run the distillation stage only.")
    parser.add_argument(
        "--insight",
        action="store_true",
        help="Produce insight feed, field report and alerts (runs distillation implicitly).",
    )
    parser.add_argument(
        "--as-of",
        dest="as_of",
        default=None,
        help="Reference date YYYY-MM-DD (defaults to the last observation).",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    if not any([args.distill, args.insight]):
        parser.print_help()
        return 1

    field = args.field
    stages = [name for name, chosen in (("distill", args.distill), ("insight", args.insight)) if chosen]

    try:
        reference_date = as_date(args.as_of)
        if args.distill and not args.insight:
            distill_path = distill_field(field)
            print(f"✅ Distilled observations → {distill_path}")

        if args.insight:
            print(f"\n🌾 Building insights for {field}...")
            feed_path, report_path, alerts_path = build_insights(field, reference_date=reference_date)
            print(f"✅ Insight feed ready → {feed_path}")
            print(f"📊 Field report → {report_path}")
            if alerts_path:
                print(f"📣 Alerts issued → {alerts_path}")
            else:
                print("🟢 No critical alerts.")
    except Exception as exc:
        print(f"🚨 Pipeline failed for {field}:\n")
        traceback.print_exc()
        _log_run(field, stages, False, f"{type(exc).__name__}: {exc}")
        return 2

    _log_run(field, stages, True, "completed.")
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
