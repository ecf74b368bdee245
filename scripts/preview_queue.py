from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from mfq_backend.deps import build_engine  # noqa: E402
from mfq_backend.features.queue import ScanBudget  # noqa: E402


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Print the next items a slideshow would show for a local folder.")
    p.add_argument("root", help="Root media folder")
    p.add_argument("-n", "--count", type=int, default=20, help="Number of items to draw (default: 20)")
    p.add_argument("--depth", type=int, default=None, help="Max folder depth (-1 = unlimited)")
    p.add_argument("--estimated-total", type=int, default=None, help="Estimated number of media files")
    p.add_argument("--sample-target", type=int, default=None)
    p.add_argument("--priority", action="append", default=[], metavar="SUBSTRING[=MULT]",
                   help="Priority folder pattern, repeatable (default multiplier 3.0)")
    p.add_argument("--media", choices=("all", "image", "video"), default="all")
    p.add_argument("--sequential", action="store_true", help="Newest-first sequential order instead of random")
    p.add_argument("--json", action="store_true", help="Print JSON instead of text")
    return p.parse_args(argv)


def _budget_from_args(args: argparse.Namespace) -> dict:
    patterns = []
    for raw in args.priority:
        path, _, mult = str(raw).partition("=")
        patterns.append({"path": path, "weight_multiplier": mult} if mult else path)
    budget: dict = {
        "priority_patterns": patterns,
        "media_kind": args.media,
        "order_mode": "sequential" if args.sequential else "random",
    }
    if args.depth is not None:
        budget["max_depth"] = args.depth
    if args.estimated_total is not None:
        budget["estimated_total_items"] = args.estimated_total
    if args.sample_target is not None:
        budget["sample_target"] = args.sample_target
    return budget


async def _run(args: argparse.Namespace) -> int:
    root = Path(args.root).expanduser().resolve()
    if not root.is_dir():
        print(f"Not a directory: {root}", file=sys.stderr)
        return 2

    parsed = ScanBudget.from_mapping(_budget_from_args(args))
    if not parsed.ok:
        print(f"Invalid options: {parsed.error}", file=sys.stderr)
        return 2

    built = build_engine(backend="filesystem", watcher_enabled=False)
    if not built.ok or built.data is None:
        print(f"Failed to build engine: {built.error}", file=sys.stderr)
        return 1
    engine = built.data
    try:
        configured = await engine.configure(str(root), parsed.data)
        if not configured.ok:
            print(f"Configure failed: {configured.error}", file=sys.stderr)
            return 1

        items = []
        for _ in range(max(0, int(args.count))):
            res = await engine.get_next()
            if not res.ok:
                print(f"[{res.code}] {res.error}", file=sys.stderr)
                break
            items.append(res.data)

        diagnostics = (await engine.get_diagnostics()).data
        if args.json:
            print(json.dumps({"items": [i.to_dict() for i in items], "diagnostics": diagnostics}, indent=2))
        else:
            for i, item in enumerate(items, 1):
                print(f"{i:4d}  {item.kind:<7} {item.item_id}")
            print()
            for key, value in (diagnostics or {}).items():
                print(f"{key:>18}: {value}")
        return 0
    finally:
        await engine.close()


def main(argv: list[str] | None = None) -> int:
    return asyncio.run(_run(_parse_args(argv)))


if __name__ == "__main__":
    raise SystemExit(main())
