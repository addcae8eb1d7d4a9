#!/usr/bin/env python3
"""Synthetic asset import file generator (CSV / XLSX).

Produces files in the import header contract (name, category, location,
vendor, serialNumber, ...) for performance runs and manual testing.
Optional noise:
- --dup-serial-ratio: share of rows reusing an earlier serial number (Update at commit)
- --typo-ratio: share of vendor names with a one-character typo (fuzzy match)
- --bad-ratio: share of rows with an invalid date or price (Skip)
"""
from __future__ import annotations

import argparse
import sys
from pathlib import Path

import numpy as np
import pandas as pd

HEADERS = [
    "name", "category", "location", "vendor", "serialNumber", "model",
    "condition", "purchaseDate", "purchasePrice", "notes", "tags",
]

ITEMS = ["Refrigerator", "Laptop", "Desk", "Chair", "Monitor", "Printer", "Router", "Washer"]
CATEGORIES = ["Appliances", "Electronics", "Furniture", "Networking"]
LOCATIONS = ["Kitchen", "Home Office", "Garage", "Living Room", "Basement"]
VENDORS = ["Home Depot", "Best Buy", "Acme Co", "Office Supply Inc", "Costco"]
CONDITIONS = ["New", "Good", "Fair", "Poor", ""]
TAGS = ["kitchen", "office", "new", "warranty", "electronics", ""]


def _typo(name: str, rng: np.random.Generator) -> str:
    # 1 文字削除 (長い名前なら類似度 0.8 以上を保つ)
    i = int(rng.integers(1, len(name)))
    return name[:i] + name[i + 1:]


def generate_assets(
    rows: int,
    seed: int = 42,
    dup_serial_ratio: float = 0.0,
    typo_ratio: float = 0.0,
    bad_ratio: float = 0.0,
) -> pd.DataFrame:
    """Generate an asset import DataFrame with string cells."""
    rng = np.random.default_rng(seed)

    serials = [f"SN{n:08d}" for n in range(1, rows + 1)]
    dup_mask = rng.random(rows) < dup_serial_ratio
    for i in np.flatnonzero(dup_mask):
        if i > 0:
            serials[i] = serials[int(rng.integers(0, i))]

    vendors = rng.choice(VENDORS, rows).tolist()
    for i in np.flatnonzero(rng.random(rows) < typo_ratio):
        vendors[i] = _typo(vendors[i], rng)

    dates = pd.date_range("2020-01-01", "2024-12-31", periods=365)
    purchase_dates = pd.DatetimeIndex(rng.choice(dates, rows)).strftime("%Y-%m-%d").tolist()
    prices = [f"{p:.2f}" for p in np.round(rng.uniform(10, 5000, rows), 2)]
    for i in np.flatnonzero(rng.random(rows) < bad_ratio):
        if i % 2:
            purchase_dates[i] = "2023/01/15"
        else:
            prices[i] = "n/a"

    tags = [
        ",".join(t for t in rng.choice(TAGS, 2, replace=False) if t)
        for _ in range(rows)
    ]

    data = {
        "name": [f"{item} {n + 1}" for n, item in enumerate(rng.choice(ITEMS, rows))],
        "category": rng.choice(CATEGORIES, rows).tolist(),
        "location": rng.choice(LOCATIONS, rows).tolist(),
        "vendor": vendors,
        "serialNumber": serials,
        "model": [f"M-{int(m)}" for m in rng.integers(100, 999, rows)],
        "condition": rng.choice(CONDITIONS, rows).tolist(),
        "purchaseDate": purchase_dates,
        "purchasePrice": prices,
        "notes": ["" for _ in range(rows)],
        "tags": tags,
    }
    return pd.DataFrame(data, columns=HEADERS)


def write_dataset(df: pd.DataFrame, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    if output_path.suffix.lower() == ".xlsx":
        df.to_excel(output_path, index=False, engine="openpyxl")
    else:
        df.to_csv(output_path, index=False)
    print(f"Created import file: {output_path}")
    print(f"  Rows: {len(df):,}")
    return output_path


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Generate synthetic asset import files",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s data/assets.csv --rows 10000
  %(prog)s data/assets.xlsx --rows 5000 --dup-serial-ratio 0.1 --typo-ratio 0.05
        """,
    )
    parser.add_argument("output", type=Path, help="Output .csv or .xlsx path")
    parser.add_argument("--rows", type=int, default=10_000, help="Number of data rows (default: 10,000)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--dup-serial-ratio", type=float, default=0.0)
    parser.add_argument("--typo-ratio", type=float, default=0.0)
    parser.add_argument("--bad-ratio", type=float, default=0.0)
    parser.add_argument("--dry-run", action="store_true", help="Show the plan without writing")
    args = parser.parse_args()

    if args.rows <= 0:
        print("Error: --rows must be positive", file=sys.stderr)
        return 1
    if args.output.suffix.lower() not in {".csv", ".xlsx"}:
        print("Error: output must be .csv or .xlsx", file=sys.stderr)
        return 1
    for name in ("dup_serial_ratio", "typo_ratio", "bad_ratio"):
        if not 0.0 <= getattr(args, name) <= 1.0:
            print(f"Error: --{name.replace('_', '-')} must be in [0, 1]", file=sys.stderr)
            return 1

    print("Dataset generation plan:")
    print(f"  Output file: {args.output}")
    print(f"  Rows: {args.rows:,}")
    print(f"  Random seed: {args.seed}")
    if args.dry_run:
        print("\n[DRY RUN] Would generate the file but not creating it.")
        return 0

    try:
        df = generate_assets(
            args.rows,
            seed=args.seed,
            dup_serial_ratio=args.dup_serial_ratio,
            typo_ratio=args.typo_ratio,
            bad_ratio=args.bad_ratio,
        )
        write_dataset(df, args.output)
        return 0
    except Exception as e:
        print(f"\nError generating dataset: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
