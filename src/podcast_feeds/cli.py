"""
Command-line interface for the podcast feed aggregator.

Usage:
    podcast-feeds add URL                   # Register a feed and sync it once
    podcast-feeds sync                      # Sync every known channel now
    podcast-feeds sync URL                  # Sync a single feed
    podcast-feeds channels                  # List channels
    podcast-feeds channel CHANNEL_ID        # Show one channel
    podcast-feeds items CHANNEL_ID          # List a channel's items
    podcast-feeds item CHANNEL_ID ITEM_ID   # Show one item
    podcast-feeds enclosure CHANNEL_ID ITEM_ID --head      # Probe the media
    podcast-feeds enclosure CHANNEL_ID ITEM_ID --output f  # Download the media
    podcast-feeds serve                     # Run the periodic sync scheduler
    podcast-feeds serve --run-now           # ... starting with an immediate pass
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from podcast_feeds.config import get_config, load_podcast_yaml, load_seed_feeds


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _build(args):
    """Create config, store, synchronizer and catalogue for a command."""
    from podcast_feeds.catalogue import Catalogue
    from podcast_feeds.models.database import DocumentStore
    from podcast_feeds.sync.synchronizer import FeedSynchronizer

    yaml_config = load_podcast_yaml()
    config = get_config(yaml_config)
    store = DocumentStore(config.db_path, timeout=config.store_timeout)
    store.initialize()
    synchronizer = FeedSynchronizer.from_config(config, store)
    return config, yaml_config, store, synchronizer, Catalogue(store, synchronizer)


def _print_payload(payload: dict) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False))
    if "error" in payload:
        sys.exit(1)


def cmd_add(args):
    """Register a feed and synchronize it once."""
    _, _, _, _, catalogue = _build(args)
    payload = catalogue.add_channel(args.url)

    if args.output_json:
        _print_payload(payload)
        return

    if "error" in payload:
        print(f"ERROR: {payload['error']}")
        sys.exit(1)
    print(f"Channel added: {payload['id']}")


def cmd_sync(args):
    """Synchronize one feed, or every known channel."""
    from podcast_feeds.errors import FeedSyncError
    from podcast_feeds.triggers.scheduler import SyncScheduler

    config, _, store, synchronizer, _ = _build(args)

    if args.url:
        try:
            result = synchronizer.synchronize(args.url)
        except FeedSyncError as exc:
            print(f"ERROR: {exc}")
            sys.exit(1)
        if args.output_json:
            print(result.to_json())
            return
        print(
            f"{args.url}: channel {result.channel_outcome.value}, "
            f"{result.items_created} created, {result.items_updated} updated, "
            f"{result.items_unchanged} unchanged"
        )
        return

    scheduler = SyncScheduler(synchronizer, store, interval_seconds=config.sync_interval_seconds)
    pass_result = scheduler.run_once()

    if args.output_json:
        print(pass_result.to_json())
    else:
        print(f"Synchronized {len(pass_result.succeeded)} of {pass_result.channel_count} channel(s)")
        for url, error in pass_result.failed.items():
            print(f"  FAILED {url}: {error}")
        for error in pass_result.errors:
            print(f"ERROR: {error}")

    if pass_result.failed or pass_result.errors:
        sys.exit(1)


def cmd_channels(args):
    """List all channels."""
    _, _, _, _, catalogue = _build(args)
    payload = catalogue.respond("list_channels")
    if args.output_json or "error" in payload:
        _print_payload(payload)
        return

    if not payload["channels"]:
        print("No channels yet. Add one with: podcast-feeds add URL")
    for channel in payload["channels"]:
        print(f"{channel['id']}  {channel.get('title', '')}  <{channel.get('url', '')}>")


def cmd_channel(args):
    """Show a single channel."""
    _, _, _, _, catalogue = _build(args)
    _print_payload(catalogue.respond("get_channel", args.channel_id))


def cmd_items(args):
    """List the items of a channel."""
    _, _, _, _, catalogue = _build(args)
    payload = catalogue.respond("list_items", args.channel_id)
    if args.output_json or "error" in payload:
        _print_payload(payload)
        return

    for item in payload["items"]:
        date = (item.get("date") or "unknown date")[:10]
        media = " [media]" if "enclosure" in item else ""
        print(f"{item['id']}  {date}  {item.get('title') or ''}{media}")


def cmd_item(args):
    """Show a single item."""
    _, _, _, _, catalogue = _build(args)
    _print_payload(catalogue.respond("get_item", args.channel_id, args.item_id))


def cmd_enclosure(args):
    """Probe or download an item's media."""
    from podcast_feeds.errors import FeedSyncError
    from podcast_feeds.ingestion.media import download_enclosure, open_enclosure

    config, _, store, _, _ = _build(args)

    try:
        if args.output:
            def on_progress(downloaded, total):
                if total:
                    print(f"\r{downloaded * 100 // total:3d}% of {total} bytes", end="")

            written = download_enclosure(
                store, args.channel_id, args.item_id, Path(args.output), on_progress,
                user_agent=config.user_agent,
            )
            print(f"\nSaved {written} bytes to {args.output}")
            return

        method = "HEAD" if args.head else "GET"
        with open_enclosure(
            store, args.channel_id, args.item_id, method, user_agent=config.user_agent
        ) as response:
            print(f"HTTP {response.status_code} {response.url}")
            for name in ("content-type", "content-length", "last-modified"):
                if name in response.headers:
                    print(f"  {name}: {response.headers[name]}")
    except FeedSyncError as exc:
        print(f"ERROR: {exc}")
        sys.exit(1)


def cmd_serve(args):
    """Run the periodic synchronization scheduler until interrupted."""
    from podcast_feeds.triggers.scheduler import SyncScheduler

    config, yaml_config, store, synchronizer, catalogue = _build(args)

    known = {channel["url"] for channel in catalogue.list_channels()}
    for url in load_seed_feeds(yaml_config):
        if url not in known:
            payload = catalogue.add_channel(url)
            if "error" in payload:
                print(f"WARNING: could not add seed feed {url}: {payload['error']}")

    scheduler = SyncScheduler(synchronizer, store, interval_seconds=config.sync_interval_seconds)
    scheduler.start(run_immediately=args.run_now)
    print(f"Synchronizing every {config.sync_interval_seconds}s (Ctrl-C to stop)")
    try:
        scheduler.wait()
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        scheduler.stop(timeout=30)


def _add_json_flag(sub):
    sub.add_argument(
        "--output-json",
        action="store_true",
        default=False,
        help="Output result as JSON (for automation)",
    )


def main():
    parser = argparse.ArgumentParser(
        prog="podcast-feeds",
        description="Podcast feed aggregator -- sync RSS feeds into a local catalogue",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        default=False,
        help="Enable debug logging",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # add
    sub_add = subparsers.add_parser("add", help="Register a feed and sync it once")
    sub_add.add_argument("url", help="Feed URL")
    _add_json_flag(sub_add)
    sub_add.set_defaults(func=cmd_add)

    # sync
    sub_sync = subparsers.add_parser("sync", help="Synchronize one feed or all channels")
    sub_sync.add_argument("url", nargs="?", default=None, help="Feed URL (default: all channels)")
    _add_json_flag(sub_sync)
    sub_sync.set_defaults(func=cmd_sync)

    # channels
    sub_channels = subparsers.add_parser("channels", help="List channels")
    _add_json_flag(sub_channels)
    sub_channels.set_defaults(func=cmd_channels)

    # channel
    sub_channel = subparsers.add_parser("channel", help="Show one channel")
    sub_channel.add_argument("channel_id", help="Channel id")
    sub_channel.set_defaults(func=cmd_channel)

    # items
    sub_items = subparsers.add_parser("items", help="List a channel's items")
    sub_items.add_argument("channel_id", help="Channel id")
    _add_json_flag(sub_items)
    sub_items.set_defaults(func=cmd_items)

    # item
    sub_item = subparsers.add_parser("item", help="Show one item")
    sub_item.add_argument("channel_id", help="Channel id")
    sub_item.add_argument("item_id", help="Item id")
    sub_item.set_defaults(func=cmd_item)

    # enclosure
    sub_enclosure = subparsers.add_parser("enclosure", help="Probe or download an item's media")
    sub_enclosure.add_argument("channel_id", help="Channel id")
    sub_enclosure.add_argument("item_id", help="Item id")
    sub_enclosure.add_argument(
        "--head",
        action="store_true",
        default=False,
        help="Send a HEAD request instead of GET",
    )
    sub_enclosure.add_argument("--output", default=None, help="Download the media to this path")
    sub_enclosure.set_defaults(func=cmd_enclosure)

    # serve
    sub_serve = subparsers.add_parser("serve", help="Run the periodic sync scheduler")
    sub_serve.add_argument(
        "--run-now",
        action="store_true",
        default=False,
        help="Run a sync pass immediately instead of after the first interval",
    )
    sub_serve.set_defaults(func=cmd_serve)

    args = parser.parse_args()
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    _setup_logging(args.verbose)
    args.func(args)


if __name__ == "__main__":
    main()
