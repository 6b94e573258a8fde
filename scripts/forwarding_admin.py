#!/usr/bin/env python3
"""Inspect the call forwarding cursor and list files.

Usage:
    python scripts/forwarding_admin.py show            # current cursor + next callee
    python scripts/forwarding_admin.py reset           # start the next call at the first callee
    python scripts/forwarding_admin.py set 2           # force the cursor to index 2
    python scripts/forwarding_admin.py check           # validate phone-number and blacklist files

Reads the same environment (or .env) as the webhook service.
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

from callforward.config import Settings
from callforward.numbers import ForwardingEntry, load_block_list, load_forwarding_list
from callforward.store import StoreError, create_store


def describe_cursor(value: int, entries: list[ForwardingEntry]) -> str:
    """One-line summary of where the next leg will go."""
    if not entries:
        return f"cursor={value}; forwarding list is empty, calls get the unavailable message"
    if value >= len(entries):
        return (
            f"cursor={value}/{len(entries)}; exhausted. A forwarded leg goes to voicemail, "
            f"a new call restarts at {entries[0].label(0)} ({entries[0].number})"
        )
    entry = entries[value]
    return f"cursor={value}/{len(entries)}; next callee {entry.label(value)} ({entry.number})"


def format_lists(entries: list[ForwardingEntry], blocked: frozenset[str]) -> str:
    lines = [f"Forwarding list: {len(entries)} valid entries"]
    for i, entry in enumerate(entries):
        lines.append(f"  {i}: {entry.label(i)} {entry.number}")
    lines.append(f"Blacklist: {len(blocked)} numbers")
    for number in sorted(blocked):
        lines.append(f"  {number}")
    return "\n".join(lines)


async def _run(args, settings: Settings) -> int:
    entries = load_forwarding_list(settings.phone_numbers_path)
    if args.command == "check":
        print(format_lists(entries, load_block_list(settings.blacklist_path)))
        return 0 if entries else 1

    value = 0 if args.command == "reset" else getattr(args, "index", 0)
    if value < 0:
        print("Cursor must be non-negative", file=sys.stderr)
        return 2

    store = create_store(settings.cursor_store, settings.sync)
    key = settings.sync.document_name
    try:
        # Creates the document on a fresh deployment
        snapshot = await store.get_cursor(key)
        if args.command == "show":
            print(describe_cursor(snapshot.value, entries))
            return 0

        await store.set_cursor(key, value)
        print(describe_cursor(value, entries))
        return 0
    except StoreError as e:
        print(f"Cursor store error: {e}", file=sys.stderr)
        return 1
    finally:
        await store.close()


def main():
    parser = argparse.ArgumentParser(description="Inspect the call forwarding cursor and list files")
    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("show", help="Print the stored cursor and next callee")
    sub.add_parser("reset", help="Set the cursor back to 0")
    set_parser = sub.add_parser("set", help="Set the cursor to a specific index")
    set_parser.add_argument("index", type=int)
    sub.add_parser("check", help="Validate the forwarding list and blacklist files")
    args = parser.parse_args()

    load_dotenv()
    sys.exit(asyncio.run(_run(args, Settings.from_env())))


if __name__ == "__main__":
    main()
