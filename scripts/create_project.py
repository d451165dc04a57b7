"""
scripts/create_project.py — Register a project and issue its API key.

Usage:
    python scripts/create_project.py --name "Acme contact form"
    python scripts/create_project.py --name Acme --webhook-url https://hooks.acme.com/leads --min-score 60
    python scripts/create_project.py --name Acme --notify owner@acme.com
"""

import sys
import os
import argparse
import json
import logging
from typing import Optional

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("create_project")

from leadvalidator.config import settings
from leadvalidator.db.session import get_session
from leadvalidator.db.repository import create_project
from leadvalidator.ingestion.normalizer import canonical_field_map


def run(args: argparse.Namespace, field_map: Optional[dict]) -> None:
    with get_session() as db:
        project = create_project(
            db,
            name=args.name,
            webhook_url=args.webhook_url,
            min_score=args.min_score,
            deliver_all=args.deliver_all,
            field_map=field_map,
            email_notifications=bool(args.notify),
            notification_email=args.notify,
        )
        project_id, api_key = project.id, project.api_key

    print("\n" + "=" * 55)
    print(f"  ✅ Project created: {args.name}")
    print("=" * 55)
    print(f"  Project ID : {project_id}")
    print(f"  API key    : {api_key}")
    print(f"  Webhook    : {args.webhook_url or '(none — delivery skipped)'}")
    print(f"  Min score  : {args.min_score if args.min_score is not None else settings.default_min_score}")
    print("=" * 55 + "\n")


def main():
    parser = argparse.ArgumentParser(description="Create a project and print its API key.")
    parser.add_argument("--name", required=True, help="Project display name")
    parser.add_argument("--webhook-url", default=None, help="Endpoint that receives leads")
    parser.add_argument(
        "--min-score", type=int, default=None,
        help="Minimum score for a qualified lead (default from .env)",
    )
    parser.add_argument(
        "--deliver-all", action="store_true",
        help="Send every scored lead to the webhook, not only qualified ones",
    )
    parser.add_argument(
        "--field-map", default=None,
        help='JSON object of canonical field → alias, e.g. \'{"email": "e_mail", "firstName": "fname"}\'',
    )
    parser.add_argument("--notify", default=None, help="Email the owner when delivery fails")
    args = parser.parse_args()

    if args.min_score is not None and not 0 <= args.min_score <= 100:
        parser.error("--min-score must be between 0 and 100")

    field_map = None
    if args.field_map:
        try:
            field_map = canonical_field_map(json.loads(args.field_map))
        except (ValueError, AttributeError) as exc:
            parser.error(f"--field-map: {exc}")
    run(args, field_map)


if __name__ == "__main__":
    main()
