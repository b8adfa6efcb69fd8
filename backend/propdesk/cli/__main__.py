# backend/propdesk/cli/__main__.py
from __future__ import annotations

import argparse
import json

from propdesk.bootstrap import build_runtime, make_durable_store
from propdesk.config import settings
from propdesk.logging_config import configure_logging
from propdesk.seed.demo_portfolio import demo_snapshot


def _seed(force: bool) -> dict:
    durable = make_durable_store(settings)
    if durable.load() is not None and not force:
        return {"ok": False, "reason": "store already holds state; pass --force to overwrite"}
    if force:
        durable.clear()
    snap = demo_snapshot()
    durable.save(snap)
    return {
        "ok": True,
        "properties": len(snap.properties),
        "schedules": len(snap.schedules),
        "people": len(snap.people),
    }


def _resolve() -> dict:
    rt = build_runtime(settings)
    out = rt.engine.run_resolver()
    return {"ok": rt.persistence.last_error is None, **out.as_dict()}


def _clear() -> dict:
    make_durable_store(settings).clear()
    return {"ok": True}


def main() -> None:
    p = argparse.ArgumentParser(prog="propdesk")
    sub = p.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="load the demo portfolio into the durable store")
    seed.add_argument("--force", action="store_true")
    sub.add_parser("resolve", help="run the PPM resolver once")
    sub.add_parser("clear", help="clear the durable store")
    args = p.parse_args()

    configure_logging()
    if args.command == "seed":
        out = _seed(args.force)
    elif args.command == "resolve":
        out = _resolve()
    else:
        out = _clear()
    print(json.dumps(out, indent=2, default=str))


if __name__ == "__main__":
    main()
