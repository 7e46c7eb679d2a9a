"""
Ledger Verification Script

Checks the Excel order ledger written by the Celery worker:
    - every order has exactly one "created" row
    - every status change follows the legal transition table
    - no order moves after reaching completed or cancelled

Run from project root: python scripts/verify.py

Author: Khalil Bannouri
Version: 1.0.0
"""

import os
import sys
from datetime import datetime

import pandas as pd

from orderflow.core.config import get_settings
from orderflow.models import LEGAL_TRANSITIONS, OrderStatus

settings = get_settings()
LEDGER_FILE = os.path.join(settings.data_directory, settings.ledger_filename)


def legal(previous: str, status: str) -> bool:
    try:
        return OrderStatus(status) in LEGAL_TRANSITIONS[OrderStatus(previous)]
    except ValueError:
        return False


def verify_ledger() -> bool:
    """Verify ledger integrity after a simulation run."""

    print("=" * 60)
    print("🔍 LEDGER VERIFICATION REPORT")
    print("=" * 60)
    print(f"⏰ Timestamp: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}")
    print(f"📄 File: {LEDGER_FILE}")
    print("=" * 60)

    if not os.path.exists(LEDGER_FILE):
        print("\n❌ Ledger file not found!")
        print("   Run the simulation first: python scripts/simulate.py")
        return False

    try:
        df = pd.read_excel(LEDGER_FILE, engine="openpyxl")
        print("\n✅ File loaded successfully!")
    except Exception as e:
        print(f"\n❌ Could not read ledger file: {e}")
        return False

    required = ["order_id", "event", "status", "previous_status", "total_amount", "occurred_at"]
    missing = [col for col in required if col not in df.columns]
    if missing:
        print(f"\n❌ Missing Columns: {missing}")
        return False
    print("✅ All required columns present")

    ok = True
    created = df[df["event"] == "created"]
    changes = df[df["event"] == "status_changed"]

    print("\n📊 STATISTICS:")
    print(f"   Rows: {len(df)}")
    print(f"   Orders created: {created['order_id'].nunique()}")
    print(f"   Status changes: {len(changes)}")

    duplicates = created["order_id"].duplicated().sum()
    if duplicates > 0:
        print(f"\n⚠️ {duplicates} orders recorded as created more than once!")
        ok = False
    else:
        print("\n✅ One created row per order")

    orphans = changes[~changes["order_id"].isin(created["order_id"])]
    if len(orphans) > 0:
        print(f"⚠️ {len(orphans)} status rows for orders never recorded as created")
        ok = False
    else:
        print("✅ Every status row belongs to a created order")

    illegal = changes[[not legal(p, s) for p, s in zip(changes["previous_status"], changes["status"])]]
    if len(illegal) > 0:
        print(f"⚠️ {len(illegal)} illegal transitions recorded:")
        print(illegal[["order_id", "previous_status", "status"]].to_string(index=False))
        ok = False
    else:
        print("✅ Every recorded transition is legal")

    moved_twice_from = changes.groupby(["order_id", "previous_status"]).size()
    forks = moved_twice_from[moved_twice_from > 1]
    if len(forks) > 0:
        print(f"⚠️ {len(forks)} orders left the same status twice (lost race was applied)")
        ok = False
    else:
        print("✅ No order left the same status twice")

    latest = df.sort_values("occurred_at").groupby("order_id").tail(1)
    completed = latest[latest["status"] == OrderStatus.COMPLETED.value]
    print(f"\n💰 REVENUE (completed orders):")
    print(f"   Total: {settings.currency_symbol}{int(completed['total_amount'].sum())}")
    print(f"   Orders: {len(completed)}")

    print(f"\n📋 LATEST STATUS PER ORDER:")
    print("-" * 60)
    print(latest["status"].value_counts().to_string())

    print("\n" + "=" * 60)
    print("✅ VERIFICATION COMPLETE" if ok else "❌ VERIFICATION FAILED")
    print("=" * 60)

    return ok


if __name__ == "__main__":
    sys.exit(0 if verify_ledger() else 1)
