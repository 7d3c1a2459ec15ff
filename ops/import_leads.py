from __future__ import annotations

import argparse
import json
import os
import sys
from typing import Any
import urllib.request
import urllib.error


DEFAULT_BASE_URL = os.getenv("ONBOARDING_BASE_URL", "http://localhost:8000")
DEFAULT_ADMIN_KEY = os.getenv("INTERNAL_ADMIN_KEY", "")

DEFAULT_TIMEOUT_SECONDS = 30

# scraped exports use these names; the API wants the right-hand ones
FIELD_ALIASES = {
    "business_name": "name",
    "instagram": "instagram_handle",
    "followers": "instagram_followers",
    "portfolio": "portfolio_urls",
    "source": "source_type",
    "notes": "admin_notes",
}


def http_post(url: str, payload: dict[str, Any], admin_key: str, admin_id: str) -> dict[str, Any]:
    data = json.dumps(payload).encode("utf-8")
    req = urllib.request.Request(
        url=url,
        data=data,
        method="POST",
        headers={
            "Content-Type": "application/json",
            "X-Internal-Admin-Key": admin_key,
            "X-Admin-Id": admin_id,
        },
    )
    try:
        with urllib.request.urlopen(req, timeout=DEFAULT_TIMEOUT_SECONDS) as resp:
            raw = resp.read().decode("utf-8")
            return json.loads(raw) if raw else {}
    except urllib.error.HTTPError as e:
        body = e.read().decode("utf-8", errors="replace")
        print(f"HTTP {e.code} {e.reason} for {url}", file=sys.stderr)
        if body:
            print(body, file=sys.stderr)
        return {"error": {"status": e.code, "reason": e.reason, "body": body}}
    except urllib.error.URLError as e:
        print(f"Network error for {url}: {e}", file=sys.stderr)
        return {"error": {"reason": str(e)}}


def normalize_lead(raw: dict[str, Any], default_source: str) -> dict[str, Any]:
    lead = {FIELD_ALIASES.get(k, k): v for k, v in raw.items() if v not in (None, "")}
    handle = lead.get("instagram_handle")
    if isinstance(handle, str):
        lead["instagram_handle"] = handle.strip().lstrip("@")
    if isinstance(lead.get("tags"), str):
        lead["tags"] = [t.strip() for t in lead["tags"].split(",") if t.strip()]
    lead.setdefault("source_type", default_source)
    return lead


def main() -> int:
    p = argparse.ArgumentParser(description="Import scraped vendor leads as pending leads (preview/apply).")
    p.add_argument("--file", required=True, help="path to json file: a list or an object with an 'items' list")
    p.add_argument("--base-url", default=DEFAULT_BASE_URL)
    p.add_argument("--admin-key", default=DEFAULT_ADMIN_KEY)
    p.add_argument("--admin-id", default="import-script")
    p.add_argument("--source", default="instagram", help="source_type for rows that do not carry one")
    p.add_argument("--mode", choices=["preview", "apply"], default="preview")
    p.add_argument("--invite", action="store_true", help="send the email invitation right after creating each lead")
    p.add_argument("--yes", action="store_true", help="required for apply mode (safety)")
    args = p.parse_args()

    if not args.admin_key:
        print("Missing INTERNAL_ADMIN_KEY (env) or --admin-key", file=sys.stderr)
        return 2

    if args.mode == "apply" and not args.yes:
        print("Refusing to apply without --yes (safety).", file=sys.stderr)
        return 2

    try:
        with open(args.file, "r", encoding="utf-8") as f:
            body = json.load(f)
    except (OSError, ValueError) as e:
        print(f"Failed to read JSON file: {e}", file=sys.stderr)
        return 2

    items = body.get("items") if isinstance(body, dict) else body
    if not isinstance(items, list):
        print("Invalid payload: expected a JSON list or an object with an 'items' list.", file=sys.stderr)
        return 2

    leads = [normalize_lead(item, args.source) for item in items if isinstance(item, dict)]
    missing_name = [i for i, lead in enumerate(leads) if not lead.get("name")]
    if missing_name:
        print(f"Rows without a name (0-based): {missing_name}", file=sys.stderr)
        return 2

    if args.mode == "preview":
        print(json.dumps({"count": len(leads), "leads": leads}, indent=2, ensure_ascii=False))
        return 0

    base_url = args.base_url.rstrip("/")
    failures = 0
    for lead in leads:
        resp = http_post(f"{base_url}/v1/admin/leads", lead, args.admin_key, args.admin_id)
        if "error" in resp:
            failures += 1
            continue

        created = resp["lead"]
        print(f"{created['id']}\t{created['name']}\t{resp['confirm_link']}")

        if args.invite and created.get("email"):
            invited = http_post(
                f"{base_url}/v1/admin/leads/{created['id']}/invite",
                {"method": "email"},
                args.admin_key,
                args.admin_id,
            )
            if "error" in invited:
                failures += 1

    print(f"imported {len(leads) - failures}/{len(leads)}", file=sys.stderr)
    return 0 if failures == 0 else 1

if __name__ == "__main__":
    raise SystemExit(main())
