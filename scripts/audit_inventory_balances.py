from __future__ import annotations

import argparse
import sys
from pathlib import Path

_ROOT = Path(__file__).resolve().parents[1]
if str(_ROOT) not in sys.path:
    sys.path.insert(0, str(_ROOT))

from app.db.session import SessionLocal
from app.services.inventory_ledger_service import recompute_balances


def main() -> int:
    parser = argparse.ArgumentParser(
        description=(
            "Compare stored inventory balances with the ledger fold and optionally repair them."
        )
    )
    parser.add_argument("--owner", type=int, default=None, help="Restrict to one owner user id.")
    parser.add_argument("--good", type=int, default=None, help="Restrict to one good id.")
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Overwrite drifted balances with the ledger total.",
    )
    args = parser.parse_args()

    with SessionLocal() as db:
        try:
            drift = recompute_balances(
                db,
                owner_user_id=args.owner,
                good_id=args.good,
                apply=args.apply,
            )
            if args.apply:
                db.commit()
        except Exception:
            db.rollback()
            raise

    print(f"Scope: owner={args.owner or 'all'} good={args.good or 'all'}")
    print(f"Drifted balances: {len(drift)}")
    for row in drift:
        print(
            f"- owner={row.owner_user_id} good={row.good_id} "
            f"recorded={row.recorded_quantity} ledger={row.ledger_quantity} delta={row.delta:+d}"
        )

    if not drift:
        print("\nResult: PASS")
        return 0
    if args.apply:
        print("\nResult: REPAIRED")
        return 0
    print("\nResult: FAIL")
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
