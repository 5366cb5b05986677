"""
Issue Admission Office Staff Token

Prints a signed access token for an admission office staff member, for use
as the Bearer token on the /admin/admissions endpoints. Staff accounts live
in the institution's identity provider; this script is for setup and
local testing.

Usage:
    python scripts/issue_staff_token.py registrar@ptc.edu.ph --name "Registrar" --hours 8
"""

import argparse
import sys
import uuid
from datetime import timedelta
from pathlib import Path

# Add the src directory to the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from app.core.auth import STAFF_ROLE
from app.core.security import create_access_token


def main() -> None:
    parser = argparse.ArgumentParser(description="Issue an admissions staff access token")
    parser.add_argument("email", help="Staff email address")
    parser.add_argument("--name", default=None, help="Display name")
    parser.add_argument("--id", default=None, help="Staff UUID (random if omitted)")
    parser.add_argument("--hours", type=int, default=8, help="Token lifetime in hours")
    args = parser.parse_args()

    staff_id = str(uuid.UUID(args.id)) if args.id else str(uuid.uuid4())
    token = create_access_token(
        staff_id,
        email=args.email,
        role=STAFF_ROLE,
        name=args.name,
        expires_delta=timedelta(hours=args.hours),
    )

    print(f"Staff ID: {staff_id}")
    print(f"Expires in: {args.hours}h")
    print(token)


if __name__ == "__main__":
    main()
