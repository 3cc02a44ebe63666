"""
Smoke-check a deployed media proxy.

Usage:
    python verify_deployment.py [--folder PATH] [--video PATH]

Environment:
    TARGET_URL (optional) - base URL of the running proxy (default: http://127.0.0.1:10000)
    ACCESS_TOKEN (optional) - static token, when the proxy requires one
"""

from __future__ import annotations

import argparse
import os
import sys
from typing import Any, Dict

import httpx


def get(client: httpx.Client, url: str, params: Dict[str, Any], headers: Dict[str, str] | None = None) -> httpx.Response:
    resp = client.get(url, params=params, headers=headers or {})
    resp.raise_for_status()
    return resp


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--folder", default="", help="Folder to list (default: root)")
    parser.add_argument("--video", help="Video path to request with a Range header")
    args = parser.parse_args()

    base_url = os.environ.get("TARGET_URL", "http://127.0.0.1:10000").rstrip("/")
    token = os.environ.get("ACCESS_TOKEN")
    auth = {"X-Access-Token": token} if token else {}

    with httpx.Client(timeout=15, follow_redirects=True) as client:
        try:
            get(client, f"{base_url}/health", {})
        except Exception as e:
            print(f"ERROR: health check failed: {e}", file=sys.stderr)
            return 1

        try:
            items = get(client, f"{base_url}/list", {"path": args.folder}, auth).json()
        except Exception as e:
            print(f"ERROR: listing {args.folder!r} failed: {e}", file=sys.stderr)
            return 1
        folders = sum(1 for item in items if item["isFolder"])
        print(f"OK: /list returned {folders} folders and {len(items) - folders} files")

        if args.video:
            try:
                resp = get(client, f"{base_url}/video", {"path": args.video}, {**auth, "Range": "bytes=0-1023"})
            except Exception as e:
                print(f"ERROR: video request failed: {e}", file=sys.stderr)
                return 1
            if resp.status_code != 206:
                print(f"WARNING: range request answered with {resp.status_code}, not 206", file=sys.stderr)
            else:
                print(f"OK: range request returned {resp.headers.get('content-range')}")

    return 0


if __name__ == "__main__":
    sys.exit(main())
