# tenancy_engine/cli/__main__.py
from __future__ import annotations

import argparse

from ..auth import issue_token
from ..config import settings
from ..db import SessionLocal
from ..services.notifications import dispatch_pending
from ..services.tenant_scores import recalculate_all_scores
from .seed_demo import seed_demo


def _cmd_seed_demo(args: argparse.Namespace) -> None:
    out = seed_demo(
        landlord_email=args.landlord_email,
        tenant_email=args.tenant_email,
        create_sample_property=(not args.no_sample_property),
    )
    print(
        {
            "ok": True,
            "landlord_email": out.landlord_email,
            "tenant_email": out.tenant_email,
            "sample_property_id": out.property_id,
        }
    )


def _cmd_recalc_scores(args: argparse.Namespace) -> None:
    db = SessionLocal()
    try:
        n = recalculate_all_scores(db)
    finally:
        db.close()
    print({"ok": True, "recalculated": n, "engine_version": settings.engine_version})


def _cmd_dispatch_notifications(args: argparse.Namespace) -> None:
    db = SessionLocal()
    try:
        out = dispatch_pending(db, limit=args.limit)
    finally:
        db.close()
    print({"ok": True, **out})


def _cmd_issue_token(args: argparse.Namespace) -> None:
    print(issue_token(args.user_id, ttl_minutes=args.ttl_minutes))


def main() -> None:
    p = argparse.ArgumentParser(prog="tenancy_engine")
    sub = p.add_subparsers(dest="command", required=True)

    s = sub.add_parser("seed-demo", help="create a demo landlord, tenant and listing")
    s.add_argument("--landlord-email", default="landlord@demo.local")
    s.add_argument("--tenant-email", default="tenant@demo.local")
    s.add_argument("--no-sample-property", action="store_true")
    s.set_defaults(func=_cmd_seed_demo)

    s = sub.add_parser("recalc-scores", help="recompute and store every tenant score")
    s.set_defaults(func=_cmd_recalc_scores)

    s = sub.add_parser("dispatch-notifications", help="deliver pending notifications without a worker")
    s.add_argument("--limit", type=int, default=settings.notifications_batch_size)
    s.set_defaults(func=_cmd_dispatch_notifications)

    s = sub.add_parser("issue-token", help="mint a bearer token for local testing")
    s.add_argument("user_id", type=int)
    s.add_argument("--ttl-minutes", type=int, default=60)
    s.set_defaults(func=_cmd_issue_token)

    args = p.parse_args()
    args.func(args)


if __name__ == "__main__":
    main()
