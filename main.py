#!/usr/bin/env python3
"""
SecureToken -- Seal and unseal expiring authenticated tokens from the shell.

Usage:
  python main.py keygen
  python main.py keygen --size 16
  python main.py seal "someone@example.com"
  echo -n "someone@example.com" | python main.py seal -
  python main.py unseal AQDKmjsAAAAAAAECA54N-r-Bb9YIJbx8xjjs9-eflPETZg==
  python main.py --key 00112233445566778899aabbccddeeff --ttl 60 seal hello

Environment variables:
  TOKEN_KEY            Hex-encoded key used when --key is not given.
  TOKEN_TTL_SECONDS    Token lifetime used when --ttl is not given.
  TOKEN_CONSTRUCTION   aes-gcm (default), chacha20-poly1305, or hmac-sha256-aes-ctr.
"""

import argparse
import secrets
import sys
from datetime import timedelta
from typing import Optional

from pydantic import ValidationError

from core.config import get_settings
from core.tokener import CONSTRUCTIONS, build_tokener
from securetoken import ConstructionError, RandomnessUnavailable, Tokener, TokenExpired, TokenInvalid

_KEY_SIZES = (16, 24, 32)


def _read_text(value: str) -> str:
    """Return value, or all of stdin when value is '-'."""
    if value == "-":
        return sys.stdin.read()
    return value


def _tokener_from_args(args: argparse.Namespace) -> Optional[Tokener]:
    """Build a Tokener from CLI flags, falling back to Settings for anything unset.

    Returns None after printing a message if the configuration is unusable.
    """
    if args.key is None:
        try:
            settings = get_settings()
        except ValidationError as e:
            print(f"  [!] Configuration error: {e.errors()[0]['msg']}", file=sys.stderr)
            print("      Pass --key or set TOKEN_KEY.", file=sys.stderr)
            return None
        if args.ttl is None and args.construction is None:
            try:
                return build_tokener(settings)
            except OverflowError:
                print("  [!] TOKEN_TTL_SECONDS is too large.", file=sys.stderr)
                return None
        key = settings.key_bytes()
        ttl = settings.token_ttl_seconds if args.ttl is None else args.ttl
        construction = args.construction or settings.token_construction
    else:
        try:
            key = bytes.fromhex(args.key)
        except ValueError:
            print("  [!] --key must be hex-encoded.", file=sys.stderr)
            return None
        ttl = 86400 if args.ttl is None else args.ttl
        construction = args.construction or "aes-gcm"

    try:
        lifetime = timedelta(seconds=ttl)
    except OverflowError:
        print(f"  [!] ttl of {ttl} seconds is too large.", file=sys.stderr)
        return None

    try:
        return Tokener(key, lifetime, construction=CONSTRUCTIONS[construction])
    except ConstructionError as e:
        print(f"  [!] {e}", file=sys.stderr)
        return None


def _cmd_keygen(args: argparse.Namespace) -> int:
    print(secrets.token_hex(args.size))
    return 0


def _cmd_seal(args: argparse.Namespace) -> int:
    tokener = _tokener_from_args(args)
    if tokener is None:
        return 2
    try:
        print(tokener.seal_string(_read_text(args.text)))
    except RandomnessUnavailable:
        print("  [!] Secure random source unavailable; no token issued.", file=sys.stderr)
        return 1
    return 0


def _cmd_unseal(args: argparse.Namespace) -> int:
    tokener = _tokener_from_args(args)
    if tokener is None:
        return 2
    try:
        print(tokener.unseal_string(_read_text(args.token).strip()))
    except TokenExpired:
        print("  [!] token expired", file=sys.stderr)
        return 1
    except TokenInvalid:
        print("  [!] token invalid", file=sys.stderr)
        return 1
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="securetoken",
        description="Seal and unseal expiring authenticated tokens.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py keygen > key.hex
  TOKEN_KEY=$(cat key.hex) python main.py seal "someone@example.com"
  TOKEN_KEY=$(cat key.hex) python main.py unseal <token>
  python main.py --key $(cat key.hex) --construction hmac-sha256-aes-ctr seal hello
        """,
    )
    parser.add_argument(
        "--key",
        metavar="HEX",
        help="Hex-encoded key (default: TOKEN_KEY from the environment or .env)",
    )
    parser.add_argument(
        "--ttl",
        type=int,
        metavar="SECONDS",
        help="Token lifetime in seconds (default: TOKEN_TTL_SECONDS, or 86400)",
    )
    parser.add_argument(
        "--construction",
        choices=sorted(CONSTRUCTIONS),
        default=None,
        metavar="NAME",
        help="Sealing construction: aes-gcm, chacha20-poly1305, or hmac-sha256-aes-ctr",
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    keygen = sub.add_parser("keygen", help="Print a fresh random hex key")
    keygen.add_argument(
        "--size",
        type=int,
        choices=_KEY_SIZES,
        default=32,
        help="Key size in bytes (default: 32)",
    )
    keygen.set_defaults(func=_cmd_keygen)

    seal = sub.add_parser("seal", help="Seal TEXT into a token")
    seal.add_argument("text", metavar="TEXT", help="Text to seal, or - to read stdin")
    seal.set_defaults(func=_cmd_seal)

    unseal = sub.add_parser("unseal", help="Verify TOKEN and print its text")
    unseal.add_argument("token", metavar="TOKEN", help="Token to unseal, or - to read stdin")
    unseal.set_defaults(func=_cmd_unseal)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    if args.ttl is not None and args.ttl < 0:
        print("  [!] --ttl must not be negative.", file=sys.stderr)
        return 2

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
