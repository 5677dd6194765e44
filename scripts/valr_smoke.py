#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json

from dotenv import load_dotenv

from valr_dca.config import check_credentials, split_list
from valr_dca.errors import GatewayError
from valr_dca.settings import Settings
from valr_dca.valr_client import ValrClient


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="VALR connectivity/account smoke test (read-only)")
    p.add_argument("--base-url", default=None)
    p.add_argument("--fiat", default=None)
    return p.parse_args()


def main() -> None:
    load_dotenv()
    args = parse_args()
    settings = Settings()
    check_credentials(settings.api_key, settings.api_secret)

    client = ValrClient.from_settings(settings, dry_run=True)
    if args.base_url:
        client.base_url = args.base_url.rstrip("/")
    fiat = (args.fiat or settings.dca_fiat_currency).upper()

    balances = {}
    account_error = None
    try:
        balances = {b.currency: str(b.available) for b in client.get_balances()}
    except GatewayError as exc:
        account_error = str(exc)

    pairs = {p.symbol: p for p in client.get_currency_pairs()}
    asks = {q.pair: q.ask_price_text for q in client.get_market_summary()}
    wanted = [f"{c}{fiat}".upper() for c in split_list(settings.dca_currencies)]

    out = {
        "base_url": client.base_url,
        "account_error": account_error,
        "fiat": fiat,
        "fiat_available": balances.get(fiat),
        "n_pairs": len(pairs),
        "configured_pairs": {
            pair: {
                "listed": pair in pairs,
                "ask": asks.get(pair),
                "min_quote": str(pairs[pair].min_quote_amount) if pair in pairs else None,
                "min_base": str(pairs[pair].min_base_amount) if pair in pairs else None,
            }
            for pair in wanted
        },
    }
    print(json.dumps(out, indent=2))


if __name__ == "__main__":
    main()
