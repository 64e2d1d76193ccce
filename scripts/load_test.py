"""Async load generator for the customer payment endpoint."""

import argparse
import asyncio
import random
import statistics
import time
from uuid import uuid4

import httpx

from payportal.common.auth import CUSTOMER, issue_token

SAMPLE_RECIPIENTS = [
    ("GB29NWBK60161331926819", "NWBKGB2L", "GB", "London"),
    ("DE89370400440532013000", "COBADEFFXXX", "DE", "Frankfurt"),
    ("FR1420041010050500013M02606", "BNPAFRPP", "FR", "Paris"),
]


async def send_one(client: httpx.AsyncClient, base_url: str, token: str):
    """Send one payment request and return (status_code, latency_ms)."""

    iban, swift, country, city = random.choice(SAMPLE_RECIPIENTS)
    payload = {
        "recipientName": "Load Test Recipient",
        "recipientEmail": "recipient@example.com",
        "recipientIBAN": iban,
        "recipientSWIFT": swift,
        "recipientAddress": "1 Test Street",
        "recipientCity": city,
        "recipientCountry": country,
        "amount": f"{random.randint(100, 250000) / 100:.2f}",
        "currency": random.choice(["USD", "EUR", "GBP"]),
        "reference": f"LT-{uuid4().hex[:12]}",
        "purpose": "load test",
    }
    started = time.perf_counter()
    try:
        resp = await client.post(
            f"{base_url}/api/payments",
            json=payload,
            headers={"Authorization": f"Bearer {token}", "x-trace-id": str(uuid4())},
        )
        latency = (time.perf_counter() - started) * 1000
        return resp.status_code, latency
    except httpx.HTTPError:
        latency = (time.perf_counter() - started) * 1000
        return 599, latency


async def run(total: int, concurrency: int, base_url: str, customers: int):
    """Execute a bounded-concurrency load run and print summary stats."""

    # The payment rate limit is per caller, so spread requests over many customers.
    tokens = [issue_token(f"load-{i}", f"load-{i}@example.com", CUSTOMER) for i in range(customers)]
    sem = asyncio.Semaphore(concurrency)
    results = []

    async with httpx.AsyncClient(timeout=10.0) as client:
        async def worker(i: int):
            async with sem:
                return await send_one(client, base_url, tokens[i % len(tokens)])

        tasks = [asyncio.create_task(worker(i)) for i in range(total)]
        for task in asyncio.as_completed(tasks):
            results.append(await task)

    codes = [c for c, _ in results]
    lats = [latency for _, latency in results]
    success = sum(1 for c in codes if 200 <= c < 300)
    throttled = sum(1 for c in codes if c == 429)
    errors = total - success

    def pct(values, p):
        """Simple percentile helper for sorted latency values."""

        if not values:
            return 0.0
        idx = min(len(values) - 1, max(0, int((p / 100.0) * len(values)) - 1))
        return sorted(values)[idx]

    print(f"total={total}")
    print(f"success={success}")
    print(f"throttled={throttled}")
    print(f"errors={errors}")
    print(f"error_rate={(errors / total) * 100:.2f}%")
    print(f"p50_ms={pct(lats, 50):.2f}")
    print(f"p95_ms={pct(lats, 95):.2f}")
    print(f"p99_ms={pct(lats, 99):.2f}")
    print(f"avg_ms={statistics.mean(lats):.2f}")


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--total", type=int, default=500)
    parser.add_argument("--concurrency", type=int, default=50)
    parser.add_argument("--base-url", default="http://localhost:8001")
    parser.add_argument("--customers", type=int, default=100)
    args = parser.parse_args()
    asyncio.run(run(args.total, args.concurrency, args.base_url, args.customers))
