"""Load recommendation documents from a JSON file.

Usage:
  python scripts/seed_recommendations.py recommendations.json [--replace]

The file holds a JSON array of objects. The API only reads recommendations,
so this is the way they get into the store.
"""

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from medinova.config import load_config
from medinova.store import RECOMMENDATIONS, DocumentStore


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("path")
    ap.add_argument("--replace", action="store_true", help="delete existing recommendations first")
    args = ap.parse_args()

    docs = json.loads(Path(args.path).read_text(encoding="utf-8"))
    if not isinstance(docs, list) or not all(isinstance(d, dict) for d in docs):
        raise SystemExit("expected a JSON array of objects")

    cfg = load_config()
    with DocumentStore(cfg.DB_DSN) as store:
        if args.replace:
            for d in store.find(RECOMMENDATIONS):
                store.delete_one(RECOMMENDATIONS, {"_id": d["_id"]})
        ids = store.insert_many(RECOMMENDATIONS, docs)

    print(f"Inserted {len(ids)} recommendations")


if __name__ == "__main__":
    main()
