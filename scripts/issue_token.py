"""Mint a portal bearer token for local testing.

Reads `JWT_SECRET` (and the rest of the portal settings) from the environment
or `.env`, so the token verifies against locally running services.
"""

import argparse

from payportal.common.auth import ROLES, issue_token


def main() -> None:
    """CLI entrypoint for issuing a development token."""

    parser = argparse.ArgumentParser(description="Issue a signed portal token.")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--email", default="")
    parser.add_argument("--role", choices=sorted(ROLES), default="customer")
    parser.add_argument("--expires-minutes", type=int, default=None)
    args = parser.parse_args()

    print(issue_token(args.user_id, args.email, args.role, expires_in_minutes=args.expires_minutes))


if __name__ == "__main__":
    main()
