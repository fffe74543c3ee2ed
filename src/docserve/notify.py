"""Slack notification of batch results."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

if TYPE_CHECKING:
    from docserve.config import NotifySettings

log = structlog.get_logger()

SLACK_POST_URL = "https://slack.com/api/chat.postMessage"


def build_message(channel: str, failed: bool, since: str | None, lines: list[str]) -> dict:
    if failed:
        text = f"Errors found in commits since {since}. See details below!"
    else:
        text = f"No errors found in commits since {since}. Continue the good work!"
    blocks = [{"type": "section", "text": {"type": "mrkdwn", "text": text}}]
    if failed:
        code = "```" + "\n".join(lines) + "```"
        blocks.append({"type": "section", "text": {"type": "mrkdwn", "text": code}})
    return {"channel": channel, "blocks": blocks}


async def post_to_slack(
    client: httpx.AsyncClient,
    settings: NotifySettings,
    *,
    failed: bool,
    since: str | None,
    lines: list[str],
) -> bool:
    """Post the batch summary. Returns False if skipped or the post failed."""
    if not settings.slack_token or not settings.channel:
        log.debug("slack_notify_skipped")
        return False

    payload = build_message(settings.channel, failed, since, lines)
    try:
        response = await client.post(
            SLACK_POST_URL,
            json=payload,
            headers={"Authorization": f"Bearer {settings.slack_token}"},
        )
    except httpx.HTTPError as exc:
        log.warning("slack_notify_failed", error=str(exc))
        return False
    log.info("slack_notify_sent", status_code=response.status_code, body=response.text[:200])
    return response.is_success
