# estatehub/cli/__main__.py
from __future__ import annotations

import argparse

from estatehub.cli.seed_admin import init_db, seed_admin


def main(argv: list[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="estatehub")
    sub = p.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed-admin", help="create the SUPER_ADMIN if none exists")
    seed.add_argument("--username", default="superadmin")
    seed.add_argument("--password", required=True)

    sub.add_parser("init-db", help="create tables (local sqlite)")

    args = p.parse_args(argv)

    if args.command == "init-db":
        init_db()
        print({"ok": True, "command": "init-db"})
        return

    out = seed_admin(username=args.username, password=args.password)
    print({"ok": True, "user_id": out.user_id, "username": out.username, "created": out.created})


if __name__ == "__main__":
    main()
