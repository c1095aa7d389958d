# pulse/tokens_cli.py
from __future__ import annotations
import argparse, json
from pulse.auth import ConfigurationError, Unauthorized, authenticate, sign_token
from pulse.config import get_settings

def main():
    p = argparse.ArgumentParser(description="Bearer token CLI (uses JWT_SECRET from the environment)")
    sub = p.add_subparsers(dest="cmd", required=True)

    mintp = sub.add_parser("mint", help="Mint a token for a merchant")
    mintp.add_argument("--merchant", default=None)

    verp = sub.add_parser("verify", help="Print the merchant a token belongs to")
    verp.add_argument("--token", required=True)

    args = p.parse_args()
    settings = get_settings()

    if args.cmd == "mint":
        merchant = args.merchant or settings.default_merchant
        try:
            token = sign_token(merchant, settings)
        except ConfigurationError as exc:
            print(f"cannot mint: {exc}")
            raise SystemExit(1)
        print(json.dumps({"merchantId": merchant, "token": token}, indent=2))
    elif args.cmd == "verify":
        try:
            print(f"valid token for {authenticate(args.token, settings=settings)}")
        except Unauthorized:
            print("invalid token")
            raise SystemExit(1)

if __name__ == "__main__":
    main()
