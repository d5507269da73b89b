#!/usr/bin/env python3
"""
authcore -- authentication core: signup, login, rotating token pairs,
server-side sessions and password reset.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8000
  python main.py serve --reload
  python main.py purge-sessions

Environment variables (see core/config.py for the full list):
  ACCESS_TOKEN_SECRET    Access token signing secret (alias JWT_SECRET). >= 32 chars.
  REFRESH_TOKEN_SECRET   Refresh token signing secret. >= 32 chars, must differ.
  DATABASE_URL           SQLAlchemy URL of the credential store.
  SESSION_CACHE_URL      "memory://" or "sqlite:///path" for the session cache.
  HOST / PORT            Bind address for `serve`.
  DEBUG                  "true" generates throwaway secrets for local development.
"""

import argparse
import sys

from core.config import get_settings


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "api.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
    )
    return 0


def _purge_sessions(args: argparse.Namespace) -> int:
    """Remove expired entries from a persistent session cache.

    Only meaningful for a sqlite:/// SESSION_CACHE_URL; an in-memory cache
    lives inside the server process.
    """
    from cache.store import create_session_cache

    settings = get_settings()
    if settings.session_cache_url == "memory://":
        print("  [!] SESSION_CACHE_URL is memory:// -- nothing to purge outside the server process.")
        return 1
    cache = create_session_cache(settings.session_cache_url)
    try:
        removed = cache.purge_expired()
    finally:
        cache.close()
    print(f"  Purged {removed} expired session(s).")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="authcore",
        description="Authentication core: signup, login, token rotation and sessions.",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn.")
    serve.add_argument("--host", default=None, help="Bind host (default: HOST setting).")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: PORT setting).")
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development).")
    serve.set_defaults(func=_serve)

    purge = sub.add_parser("purge-sessions", help="Delete expired entries from a persistent session cache.")
    purge.set_defaults(func=_purge_sessions)
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
