"""CLI entry point for social-publisher.

Usage:
    social-publish run-due
    social-publish publish POST_ID
    social-publish results POST_ID
    social-publish queue-stats USER_ID
    social-publish fill-queue USER_ID [--days N]
    social-publish generate-key
    social-publish status
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from social_publisher.config import load_config, SocialConfig
from social_publisher.crypto import generate_key
from social_publisher.errors import SocialPublisherError
from social_publisher.factory import build_engine
from social_publisher.logging import configure_logging


def cmd_run_due(cfg: SocialConfig) -> None:
    summary = build_engine(cfg).publisher.publish_due_posts()
    print(f"Processed {summary.total} due posts: "
          f"{summary.successful} succeeded, {summary.failed} failed.")
    for err in summary.errors:
        print(f"  [FAILED] {err['post_id']}: {err['error']}")


def cmd_publish(cfg: SocialConfig, post_id: str) -> None:
    outcome = build_engine(cfg).publisher.publish_post(post_id)
    print(f"Post {post_id}: {outcome.status.value}")
    for r in outcome.results:
        print(f"  [{r.status.value.upper()}] {r.platform.value}: "
              f"{r.remote_post_url or r.error_message or 'N/A'}")


def cmd_results(cfg: SocialConfig, post_id: str) -> None:
    engine = build_engine(cfg)
    if engine.store.get_post(post_id) is None:
        print(f"Post not found: {post_id}", file=sys.stderr)
        sys.exit(1)
    results = engine.store.results_for_post(post_id)
    print(f"Results for {post_id}: {len(results)}")
    for r in results:
        print(f"  [{r.status.value}] {r.platform.value} / {r.account_id}: "
              f"{r.remote_post_url or r.error_message}")


def cmd_queue_stats(cfg: SocialConfig, user_id: str) -> None:
    stats = build_engine(cfg).queue.queue_stats(user_id)
    next_at = stats.next_post_at.isoformat() if stats.next_post_at else "none"
    print(f"Queue for {user_id}: {stats.total_scheduled} scheduled, "
          f"{stats.empty_slots} empty slots this week, next at {next_at}")


def cmd_fill_queue(cfg: SocialConfig, user_id: str, days: int) -> None:
    filled = build_engine(cfg).queue.fill_with_evergreen(user_id, days_ahead=days)
    print(f"Filled {filled} slots with evergreen posts for {user_id}.")


def cmd_generate_key() -> None:
    print(generate_key())


def cmd_status(cfg: SocialConfig) -> None:
    print(f"Encryption key: {'set' if cfg.encryption_key else 'not set'}")
    print(f"Twitter:  {'configured' if cfg.twitter_client_id else 'not configured'}")
    print(f"LinkedIn: {'configured' if cfg.linkedin_client_id else 'not configured'}")
    print(f"Store:    {cfg.store_path or 'in-memory'}")
    print(f"Workers:  {cfg.max_workers}")


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="social-publish", description="Social publishing CLI")
    parser.add_argument("--config", type=Path, default=None, help="Config YAML file")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("run-due", help="Publish every post whose schedule has come due")

    publish_p = sub.add_parser("publish", help="Publish one post now")
    publish_p.add_argument("post_id")

    results_p = sub.add_parser("results", help="Show per-account results for a post")
    results_p.add_argument("post_id")

    stats_p = sub.add_parser("queue-stats", help="Show a user's queue statistics")
    stats_p.add_argument("user_id")

    fill_p = sub.add_parser("fill-queue", help="Fill free queue slots with evergreen posts")
    fill_p.add_argument("user_id")
    fill_p.add_argument("--days", type=int, default=7, help="How many days ahead to fill")

    sub.add_parser("generate-key", help="Print a fresh base64 encryption key")
    sub.add_parser("status", help="Show configuration status")

    args = parser.parse_args(argv)
    if not args.command:
        parser.print_help()
        return

    if args.command == "generate-key":
        cmd_generate_key()
        return

    cfg = load_config(args.config)
    configure_logging(cfg.log_level, json=cfg.log_json)

    try:
        if args.command == "run-due":
            cmd_run_due(cfg)
        elif args.command == "publish":
            cmd_publish(cfg, args.post_id)
        elif args.command == "results":
            cmd_results(cfg, args.post_id)
        elif args.command == "queue-stats":
            cmd_queue_stats(cfg, args.user_id)
        elif args.command == "fill-queue":
            cmd_fill_queue(cfg, args.user_id, args.days)
        elif args.command == "status":
            cmd_status(cfg)
    except SocialPublisherError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
