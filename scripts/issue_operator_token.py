"""Issue a bearer token for an operator.

Usage:
    AUTH_JWT_SECRET=... uv run python scripts/issue_operator_token.py <user_id> [ttl_hours]

The token's subject is the numeric users.id; the API resolves it on every
request, so the user must exist in the target database.
"""

from __future__ import annotations

import os
import sys


def main() -> None:
    if len(sys.argv) < 2:
        print("Usage: uv run python scripts/issue_operator_token.py <user_id> [ttl_hours]")
        sys.exit(2)

    try:
        user_id = int(sys.argv[1])
        ttl_hours = float(sys.argv[2]) if len(sys.argv) > 2 else 12.0
    except ValueError:
        print("ERROR: user_id must be an integer and ttl_hours a number")
        sys.exit(2)

    secret = os.environ.get("AUTH_JWT_SECRET", "")
    if not secret:
        print("ERROR: AUTH_JWT_SECRET not set")
        sys.exit(1)

    # Import after env validation
    from opsdesk.api.auth import issue_token

    token = issue_token(user_id, secret=secret, ttl_seconds=int(ttl_hours * 3600))
    print(token)


if __name__ == "__main__":
    main()
