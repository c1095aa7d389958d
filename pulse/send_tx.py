# pulse/send_tx.py
from __future__ import annotations
import argparse, json
from pulse.client import DEFAULT_BASE_URL, fetch_stats, post_transaction

def main():
    ap = argparse.ArgumentParser(description="Post one transaction to a running Pulse server")
    ap.add_argument("--url", default=DEFAULT_BASE_URL)
    ap.add_argument("--token", required=True)
    ap.add_argument("--amount", type=float, required=True)
    ap.add_argument("--method", required=True, help="e.g. card, cash, wave")
    ap.add_argument("--currency", default=None)
    ap.add_argument("--item", default=None)
    ap.add_argument("--meta", default=None, help="JSON object")
    args = ap.parse_args()

    meta = json.loads(args.meta) if args.meta else None
    post_transaction(args.token, args.amount, args.method,
                     currency=args.currency, item=args.item, meta=meta, base_url=args.url)
    print(f"Sent {args.amount} {args.currency or 'EUR'} via {args.method}")
    print(json.dumps(fetch_stats(args.token, base_url=args.url), indent=2))

if __name__ == "__main__":
    main()
