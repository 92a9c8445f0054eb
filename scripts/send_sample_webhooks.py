"""Script to post signed sample deliveries to a running Hookboard server.

Run with: uv run python scripts/send_sample_webhooks.py [base_url]

This will send one push, one pull request, one merged pull request and one
generic webhook so both dashboard views have something to show.

Deliveries are signed with WEBHOOK_SECRET from .env, just like GitHub does.
"""

import asyncio
import json
import sys
import uuid
from pathlib import Path
from typing import Any

# Load .env file from the project root
from dotenv import load_dotenv

project_dir = Path(__file__).parent.parent
load_dotenv(project_dir / ".env")

# Add parent directory to path so we can import hookboard modules
sys.path.insert(0, str(project_dir))

import aiohttp

from hookboard.core.config import get_settings
from hookboard.server.signature import compute_signature

SAMPLE_AUTHOR = "octocat"
SAMPLE_BRANCH = "feature/sample-data"

SAMPLE_PUSH: dict[str, Any] = {
    "ref": "refs/heads/main",
    "pusher": {"name": SAMPLE_AUTHOR, "email": "octocat@example.com"},
    "head_commit": {"author": {"name": "The Octocat", "username": SAMPLE_AUTHOR}},
}


def sample_pull_request(action: str, merged: bool = False) -> dict[str, Any]:
    """Create a sample pull_request payload."""
    return {
        "action": action,
        "pull_request": {
            "number": 42,
            "merged": merged,
            "user": {"login": SAMPLE_AUTHOR},
            "merged_by": {"login": "hubot"} if merged else None,
            "head": {"ref": SAMPLE_BRANCH},
            "base": {"ref": "main"},
        },
    }


SAMPLE_GENERIC: dict[str, Any] = {
    "type": "order.created",
    "order": {"id": "ord_1001", "total": 42.5, "currency": "USD"},
}


async def post_json(
    session: aiohttp.ClientSession,
    url: str,
    payload: dict[str, Any],
    headers: dict[str, str],
    secret: str | None,
) -> None:
    """Post a payload, signing the exact bytes when a secret is configured."""
    body = json.dumps(payload).encode()
    headers = {"Content-Type": "application/json", **headers}
    if secret:
        headers["X-Hub-Signature-256"] = compute_signature(body, secret)

    async with session.post(url, data=body, headers=headers) as response:
        text = await response.text()
        print(f"  {response.status} {text}")


async def main() -> None:
    """Send the sample deliveries."""
    settings = get_settings()
    base_url = (sys.argv[1] if len(sys.argv) > 1 else settings.dashboard_url).rstrip("/")
    secret = settings.webhook_secret

    if not secret:
        print("WEBHOOK_SECRET is not set; sending unsigned deliveries")

    github_url = f"{base_url}/api/github/webhook"
    deliveries = [
        ("push", SAMPLE_PUSH),
        ("pull_request", sample_pull_request("opened")),
        ("pull_request", sample_pull_request("closed", merged=True)),
    ]

    async with aiohttp.ClientSession() as session:
        try:
            for event_type, payload in deliveries:
                print(f"Sending GitHub {event_type} delivery...")
                await post_json(
                    session,
                    github_url,
                    payload,
                    {"X-GitHub-Event": event_type, "X-GitHub-Delivery": str(uuid.uuid4())},
                    secret,
                )

            print("Sending generic webhook...")
            await post_json(session, f"{base_url}/api/webhooks/generic", SAMPLE_GENERIC, {}, secret)

            print("All sample deliveries sent!")

        except aiohttp.ClientError as e:
            print(f"Error sending deliveries to {base_url}: {e}")
            sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
