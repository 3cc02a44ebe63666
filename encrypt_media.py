"""
Encrypt or decrypt media files with the proxy's cipher scheme.

Usage:
    python encrypt_media.py encrypt lecture.mp4          # writes lecture.mp4.enc
    python encrypt_media.py decrypt lecture.mp4.enc      # writes lecture.mp4

Environment:
    ENCRYPTION_PASSPHRASE - passphrase the key is derived from
    ENCRYPTION_MODE (optional) - cbc or ctr (default: ctr)
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from mediaproxy.config import Settings
from mediaproxy.content_types import ENCRYPTED_SUFFIX, is_encrypted, strip_encrypted_suffix
from mediaproxy.crypto import CryptoCodec
from mediaproxy.errors import DecryptionFailure


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("action", choices=["encrypt", "decrypt"])
    parser.add_argument("files", nargs="+", type=Path)
    parser.add_argument("--force", action="store_true", help="Overwrite existing output files")
    args = parser.parse_args()

    settings = Settings()
    if not settings.encryption_passphrase:
        print("ERROR: ENCRYPTION_PASSPHRASE is not set", file=sys.stderr)
        return 1
    codec = CryptoCodec(settings.encryption_passphrase, settings.encryption_mode)

    failed = 0
    for src in args.files:
        if args.action == "encrypt":
            dest = src.with_name(src.name + ENCRYPTED_SUFFIX)
        elif is_encrypted(src.name):
            dest = src.with_name(strip_encrypted_suffix(src.name))
        else:
            print(f"SKIP: {src} has no {ENCRYPTED_SUFFIX} suffix", file=sys.stderr)
            failed += 1
            continue

        if dest.exists() and not args.force:
            print(f"SKIP: {dest} exists (use --force)", file=sys.stderr)
            failed += 1
            continue

        data = src.read_bytes()
        try:
            out = codec.encrypt(data) if args.action == "encrypt" else codec.decrypt(data)
        except DecryptionFailure as e:
            print(f"ERROR: {src}: {e}", file=sys.stderr)
            failed += 1
            continue
        dest.write_bytes(out)
        print(f"OK: {src} -> {dest}")

    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main())
