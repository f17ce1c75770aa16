# backend/run_local.py
import json
import sys
from pathlib import Path

from backend.lib.insights_core.dashboard import dashboard_snapshot
from backend.lib.insights_core.io import parse_csv_string


def main(csv_path, category="household"):
    readings = parse_csv_string(Path(csv_path).read_text())
    print(f"Parsed {len(readings)} readings:")
    for r in readings:
        print(f" - {r.meter_number} @ {r.timestamp.isoformat()} : "
              f"{r.kwh_consumed} kWh, KSh {r.total_cost:.2f}")
    print(json.dumps(dashboard_snapshot(readings, category), indent=2))


if __name__ == "__main__":
    csv = sys.argv[1] if len(sys.argv) > 1 else "tests/sample.csv"
    main(csv, *sys.argv[2:3])
