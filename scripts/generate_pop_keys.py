#!/usr/bin/env python3
"""
Generate an RSA key pair for local PoP runs.

Writes the client's private key and the public key the server verifies
against. Point ACCESS_POP_CLIENT_PRIVATE_KEY_PATH and
ACCESS_POP_PUBLIC_KEY_PATH at the two files.
"""

import argparse
import sys
from pathlib import Path

from service_pop_auth.app.keys import generate_rsa_keypair, public_key_to_pem, write_private_key


def main(argv=None):
    """Generate and write the key pair."""
    parser = argparse.ArgumentParser(description="Generate an RSA key pair for PoP tokens")
    parser.add_argument("--output-dir", default="keys", help="Directory to write the PEM files to")
    parser.add_argument("--name", default="client", help="File name prefix")
    parser.add_argument("--key-size", type=int, default=2048, help="RSA modulus size in bits")
    parser.add_argument("--password", help="Encrypt the private key with this password")
    parser.add_argument("--force", action="store_true", help="Overwrite existing files")
    args = parser.parse_args(argv)

    output_dir = Path(args.output_dir)
    private_path = output_dir / f"{args.name}-private.pem"
    public_path = output_dir / f"{args.name}-public.pem"

    existing = [path for path in (private_path, public_path) if path.exists()]
    if existing and not args.force:
        print(f"Refusing to overwrite {', '.join(map(str, existing))}; use --force")
        return 1

    output_dir.mkdir(parents=True, exist_ok=True)
    private_key, public_key = generate_rsa_keypair(args.key_size)

    write_private_key(private_path, private_key, args.password)
    public_path.write_bytes(public_key_to_pem(public_key))

    print(f"Private key: {private_path}")
    print(f"Public key:  {public_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
