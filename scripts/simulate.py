"""
Chaos Simulation Script

Fires concurrent customers and staff at a running engine:
    - valid carts, carts under the minimum and tampered totals
    - duplicate submissions sharing an idempotency key
    - two staff members racing to move the same order

Run from project root: python scripts/simulate.py

Author: Khalil Bannouri
Version: 1.0.0
"""

import argparse
import asyncio
import random
import sys
import time
import uuid
from collections import Counter
from datetime import datetime
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = "http://localhost:8001"
TOTAL_ORDERS = 50

FIRST_NAMES = ["Rahim", "Karim", "Salma", "Nusrat", "Tanvir", "Farhana", "Imran", "Ayesha", "Sabbir", "Mitu"]
LAST_NAMES = ["Uddin", "Hossain", "Akter", "Rahman", "Islam", "Chowdhury", "Khan", "Begum"]
MENU_ITEMS = [
    {"menu_item_id": "kacchi", "menu_item_name": "Kacchi Biryani", "unit_price": 150},
    {"menu_item_id": "tehari", "menu_item_name": "Beef Tehari", "unit_price": 120},
    {"menu_item_id": "roast", "menu_item_name": "Chicken Roast", "unit_price": 90},
    {"menu_item_id": "borhani", "menu_item_name": "Borhani", "unit_price": 50},
    {"menu_item_id": "firni", "menu_item_name": "Firni", "unit_price": 40},
]


def generate_random_customer() -> dict[str, str]:
    """Generate random customer info."""
    return {
        "customer_name": f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}",
        "customer_phone": f"017{random.randint(10000000, 99999999)}",
        "customer_location": f"Room {random.randint(100, 599)}, Block {random.choice('ABCDE')}",
    }


def generate_random_items(max_lines: int = 4) -> list[dict]:
    """Distinct menu lines with random quantities."""
    lines = random.sample(MENU_ITEMS, random.randint(1, max_lines))
    return [dict(item, quantity=random.randint(1, 3)) for item in lines]


def items_total(items: list[dict]) -> int:
    return sum(item["unit_price"] * item["quantity"] for item in items)


def generate_order_payload(kind: str) -> dict[str, Any]:
    """
    Build an order payload of the requested kind.

    Args:
        kind: "valid", "below_minimum" or "tampered"
    """
    if kind == "below_minimum":
        items = [dict(MENU_ITEMS[3], quantity=1)]
        total = items_total(items)
    else:
        items = generate_random_items()
        while items_total(items) < 300:
            items.append(dict(MENU_ITEMS[0], menu_item_id=f"kacchi-{len(items)}", quantity=1))
        total = items_total(items)
        if kind == "tampered":
            total -= random.randint(1, 50)

    return {
        **generate_random_customer(),
        "items": items,
        "total_amount": total,
        "idempotency_key": uuid.uuid4().hex,
    }


# =============================================================================
# CUSTOMERS
# =============================================================================

async def send_order(
    client: httpx.AsyncClient,
    order_num: int,
    payload: dict[str, Any],
    kind: str,
) -> dict[str, Any]:
    """POST one order and classify the outcome."""
    start_time = time.time()

    try:
        response = await client.post(f"{API_BASE_URL}/api/orders", json=payload, timeout=30.0)
        elapsed = round(time.time() - start_time, 3)
        data = response.json()

        if response.status_code == 201:
            return {
                "order_num": order_num,
                "kind": kind,
                "success": True,
                "order_id": data.get("order_id"),
                "total": data.get("total_amount"),
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "kind": kind,
            "success": False,
            "error": data.get("error", str(response.status_code)),
            "time": elapsed,
        }
    except Exception as e:
        return {
            "order_num": order_num,
            "kind": kind,
            "success": False,
            "error": f"transport: {str(e)[:80]}",
            "time": round(time.time() - start_time, 3),
        }


# =============================================================================
# STAFF
# =============================================================================

async def change_status(client: httpx.AsyncClient, order_id: int, status: str) -> str:
    """PATCH a status and return "ok" or the engine's error code."""
    try:
        response = await client.patch(
            f"{API_BASE_URL}/api/orders/{order_id}/status",
            json={"status": status},
            timeout=30.0,
        )
    except Exception as e:
        return f"transport: {str(e)[:80]}"
    if response.status_code == 200:
        return "ok"
    return response.json().get("error", str(response.status_code))


async def race_staff(client: httpx.AsyncClient, order_id: int) -> list[str]:
    """Two staff members act on the same pending order at once."""
    return list(await asyncio.gather(
        change_status(client, order_id, "processing"),
        change_status(client, order_id, "cancelled"),
    ))


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Run the chaos simulation.

    Roughly 70% of customers send valid carts, the rest are split between
    carts under the minimum and tampered totals. A few valid payloads are
    sent twice. Every created order is then raced by two staff members.
    """
    print("=" * 70)
    print("🔥 CHAOS SIMULATION - HIGH CONCURRENCY TEST")
    print("=" * 70)
    print(f"📋 Total Customers: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    kinds = random.choices(["valid", "below_minimum", "tampered"], weights=[70, 15, 15], k=num_orders)
    payloads = [generate_order_payload(kind) for kind in kinds]
    duplicates = [(i, payloads[i]) for i, k in enumerate(kinds) if k == "valid"][:3]

    start_time = time.time()

    async with httpx.AsyncClient() as client:
        print("\n🚀 Firing customer orders...\n")
        tasks = [send_order(client, i + 1, p, k) for i, (p, k) in enumerate(zip(payloads, kinds))]
        tasks += [send_order(client, i + 1, p, "duplicate") for i, p in duplicates]
        results = await asyncio.gather(*tasks)

        created = sorted({r["order_id"] for r in results if r["success"]})
        print(f"🧑‍🍳 Racing staff on {len(created)} orders...\n")
        races = await asyncio.gather(*[race_staff(client, order_id) for order_id in created])

    total_time = round(time.time() - start_time, 2)

    # Analyze results
    outcomes = Counter((r["kind"], "created" if r["success"] else r["error"]) for r in results)
    race_outcomes = Counter(tuple(sorted(pair)) for pair in races)
    double_wins = sum(1 for pair in races if pair.count("ok") > 1)
    duplicate_ids = {r["order_id"] for r in results if r["kind"] == "duplicate" and r["success"]}
    original_ids = {r["order_id"] for r in results if r["success"] and r["kind"] == "valid"}

    print("=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)
    print(f"\n⏱️  Total Time: {total_time}s")
    print(f"📦 Distinct orders created: {len(created)}")

    print("\n🧾 Customer outcomes:")
    for (kind, outcome), count in sorted(outcomes.items()):
        print(f"   {kind:<14} → {outcome:<20} x{count}")

    print("\n🧑‍🍳 Staff race outcomes:")
    for pair, count in sorted(race_outcomes.items()):
        print(f"   {' + '.join(pair):<40} x{count}")

    problems = []
    if double_wins:
        problems.append(f"{double_wins} orders accepted two racing transitions")
    if any(r["success"] for r in results if r["kind"] in ("below_minimum", "tampered")):
        problems.append("an invalid cart was accepted")
    if not duplicate_ids <= original_ids:
        problems.append("a duplicate submission created a second order")

    print("\n" + "=" * 70)
    if problems:
        for problem in problems:
            print(f"❌ {problem}")
    else:
        print("✅ Invariants held: one winner per race, no invalid or duplicate orders")
    print("=" * 70)
    print("🔍 Next: check the Celery terminal, then run python scripts/verify.py")
    print("=" * 70)

    return {
        "total": len(results),
        "created": len(created),
        "problems": problems,
        "total_time": total_time,
    }


async def preflight() -> bool:
    """Check the engine is reachable before firing load."""
    async with httpx.AsyncClient() as client:
        try:
            response = await client.get(f"{API_BASE_URL}/health", timeout=10.0)
        except httpx.HTTPError as e:
            print(f"❌ Engine unreachable: {e}")
            return False
    data = response.json()
    print(f"✅ Status: {data.get('status')}")
    print(f"   Database: {data.get('database')}")
    print(f"   Redis: {data.get('redis')}")
    print(f"   Alert sink: {data.get('alert_sink')}")
    return response.status_code == 200


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Chaos Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of customers")
    parser.add_argument("--url", default=API_BASE_URL, help="Engine base URL")
    args = parser.parse_args()
    API_BASE_URL = args.url

    if not asyncio.run(preflight()):
        sys.exit(1)

    summary = asyncio.run(run_simulation(num_orders=args.orders))
    sys.exit(1 if summary["problems"] else 0)
