"""Fetch and print the review queue dashboard (stats, trends, queue health)."""

import argparse
import json

import httpx


def main() -> None:
    """CLI entrypoint for review queue checks."""

    parser = argparse.ArgumentParser(description="Fetch review dashboard aggregates from the review service.")
    parser.add_argument("--review-url", default="http://localhost:8002")
    parser.add_argument("--token", required=True, help="employee bearer token")
    args = parser.parse_args()

    headers = {"Authorization": f"Bearer {args.token}"}
    report = {}
    with httpx.Client(base_url=args.review_url, headers=headers, timeout=10.0) as client:
        for name, path in (
            ("stats", "/api/employee/payments/stats"),
            ("trends", "/api/employee/payments/trends"),
            ("queueHealth", "/api/employee/payments/queue-health"),
        ):
            resp = client.get(path)
            resp.raise_for_status()
            report[name] = resp.json().get("data")
    print(json.dumps(report, indent=2))


if __name__ == "__main__":
    main()
