#!/usr/bin/env python3
"""
Command line PoP client.

Signs a token with the configured private key, calls the server and prints
its response. With --replay the same token is sent a second time, which a
correctly configured server must reject.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

import httpx

from shared.config import BaseConfig
from shared.errors import AccessLayerException, ValidationError
from shared.logging import configure_logging, get_logger
from service_pop_auth.app.keys import load_private_key
from .issuer import PopTokenIssuer
from .pop_client import PopClient

logger = get_logger("pop_client.cli")


def build_parser(config: BaseConfig) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Call a PoP-protected endpoint")
    parser.add_argument("--url", default=config.pop_server_url, help="Endpoint URL")
    parser.add_argument(
        "--key",
        default=config.pop_client_private_key_path,
        help="PEM private key used to sign the token",
    )
    parser.add_argument(
        "--password",
        default=config.pop_client_private_key_password,
        help="Password of an encrypted private key",
    )
    parser.add_argument("--subject", default=config.pop_client_subject, help="Token subject (sub claim)")
    parser.add_argument("--ttl", type=int, default=config.pop_token_ttl_seconds, help="Token lifetime in seconds")
    parser.add_argument("--nonce", help="Use this nonce instead of a random one")
    parser.add_argument("--algorithm", default=config.pop_algorithm, help="JWS signing algorithm")
    parser.add_argument("--timeout", type=float, default=10.0, help="HTTP timeout in seconds")
    parser.add_argument("--replay", action="store_true", help="Send the same token twice")
    return parser


async def run(args: argparse.Namespace, transport: Optional[httpx.AsyncBaseTransport] = None) -> int:
    if not args.key:
        raise ValidationError(
            "No private key configured; pass --key or set ACCESS_POP_CLIENT_PRIVATE_KEY_PATH"
        )

    issuer = PopTokenIssuer(
        load_private_key(args.key, args.password),
        subject=args.subject,
        algorithm=args.algorithm,
        ttl_seconds=args.ttl,
    )
    token = issuer.issue(nonce=args.nonce)
    attempts = 2 if args.replay else 1

    exit_code = 0
    async with PopClient(args.url, issuer, timeout=args.timeout, transport=transport) as client:
        for _ in range(attempts):
            try:
                response = await client.call(token)
            except httpx.HTTPError as exc:
                logger.error("PoP request failed", url=args.url, error=str(exc))
                print("Failed to get a response from the server.")
                return 1

            if response.status_code == httpx.codes.OK:
                print(f"Server Response: {response.text}")
            else:
                print("Failed to get a response from the server.")
                print(f"Status: {response.status_code} {response.text}".rstrip())
                exit_code = 1
    return exit_code


def main(argv: Optional[List[str]] = None) -> int:
    config = BaseConfig()
    configure_logging("pop_client", config.log_level)
    args = build_parser(config).parse_args(argv)

    try:
        return asyncio.run(run(args))
    except AccessLayerException as exc:
        print(exc.message, file=sys.stderr)
        return 2


if __name__ == "__main__":
    sys.exit(main())
