"""Create a user in the CRM database.

Usage:
  python scripts/create_user.py --username alice --email alice@acme-corp.com --password '...' --role user

This is the admin path: it can create admins, unlike /api/auth/register.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from salesflow_crm.auth.crud import create_user
from salesflow_crm.config import load_config
from salesflow_crm.db import connect, init_db
from salesflow_crm.models import ROLES


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--username", required=True)
    ap.add_argument("--email", required=True)
    ap.add_argument("--password", required=True)
    ap.add_argument("--role", choices=list(ROLES), default="user")
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    with connect(cfg.DB_DSN) as conn:
        u = create_user(
            conn,
            username=args.username,
            email=args.email,
            password=args.password,
            role=args.role,
            min_password_length=cfg.AUTH_MIN_PASSWORD_LENGTH,
        )

    print("Created user:")
    print(u)


if __name__ == "__main__":
    main()
