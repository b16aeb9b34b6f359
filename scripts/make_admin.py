"""Promote a user to admin (creating the record if it does not exist).

Usage:
  python scripts/make_admin.py --email alice@example.com

NOTE: This is how the first admin gets in; after that admins can promote
others through PATCH /users/admin/{id}.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from medinova.auth.users import ensure_admin
from medinova.config import load_config
from medinova.store import DocumentStore


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    args = ap.parse_args()

    cfg = load_config()
    with DocumentStore(cfg.DB_DSN) as store:
        u = ensure_admin(store, args.email)

    print("Admin user:")
    print(u)


if __name__ == "__main__":
    main()
