#!/usr/bin/env python3
"""Issue a development access token for a tenant and actor.

Identity is resolved by an upstream provider in production; this script only
exists so the API can be exercised locally.
"""

import argparse
import sys
from datetime import timedelta
from uuid import UUID


def main() -> int:
    """Print a signed token to stdout."""
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--tenant", required=True, type=UUID, help="Tenant (organization) id")
    parser.add_argument("--actor", required=True, type=UUID, help="Acting user id")
    parser.add_argument("--minutes", type=int, default=60, help="Token lifetime")
    args = parser.parse_args()

    from scheduling.config import settings
    from scheduling.core.security import create_access_token

    if settings.is_production:
        print("❌ Refusing to issue tokens in production", file=sys.stderr)
        return 1

    print(create_access_token(args.actor, args.tenant, timedelta(minutes=args.minutes)))
    return 0


if __name__ == "__main__":
    sys.exit(main())
