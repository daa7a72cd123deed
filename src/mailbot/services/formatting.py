"""Slack-flavoured text renderings of mailbox results.

These strings are shown to users and fed back to the model as tool output,
so their layout is fixed.
"""

from typing import List, Sequence

from ..models import EmailMessage, Label, MarketingEmail, UnsubscribeInfo

BODY_PREVIEW_LIMIT = 500
NO_EMAILS = "No emails found."


def format_email(email: EmailMessage, include_body: bool = False) -> str:
    lines = [
        f"*Subject:* {email.subject}",
        f"*From:* {email.sender}",
        f"*Date:* {email.date}",
        f"*ID:* `{email.id}`",
    ]

    if include_body and email.body:
        body = email.body
        if len(body) > BODY_PREVIEW_LIMIT:
            body = body[:BODY_PREVIEW_LIMIT] + "..."
        lines.append(f"\n>>> {body}")
    else:
        lines.append(f"\n_{email.snippet}_")

    return "\n".join(lines)


def format_email_list(emails: Sequence[EmailMessage]) -> str:
    if not emails:
        return NO_EMAILS

    blocks = []
    for i, email in enumerate(emails, 1):
        blocks.append(
            "\n".join(
                [
                    f"*{i}. {email.subject}*",
                    f"   From: {email.sender}",
                    f"   Date: {email.date}",
                    f"   ID: `{email.id}`",
                ]
            )
        )
    return "\n\n".join(blocks)


def format_labels(labels: Sequence[Label], system_limit: int = 10) -> str:
    """Render user labels with their ids, then up to system_limit system labels."""
    if not labels:
        return "No labels found."

    user_labels = [label for label in labels if label.type == "user"]
    system_labels = [label for label in labels if label.type == "system"]

    result = "*Your Labels:*\n"
    if user_labels:
        result += "\n".join(f"• {label.name} (ID: `{label.id}`)" for label in user_labels)
    else:
        result += "_No custom labels_"
    result += "\n\n*System Labels:*\n"
    result += "\n".join(f"• {label.name}" for label in system_labels[:system_limit])
    return result


def format_marketing_emails(emails: Sequence[MarketingEmail]) -> str:
    if not emails:
        return "No marketing emails found."

    parts: List[str] = [f"*Found {len(emails)} marketing/promotional emails:*\n\n"]
    for email in emails:
        parts.append(f"*{email.subject}*\n")
        parts.append(f"From: {email.sender}\n")
        parts.append(f"ID: `{email.id}`\n")
        if email.has_unsubscribe:
            if email.unsubscribe_links:
                parts.append(f"🔗 Unsubscribe: {email.unsubscribe_links[0]}\n")
            elif email.unsubscribe_email:
                parts.append(f"📧 Unsubscribe email: {email.unsubscribe_email}\n")
        else:
            parts.append("⚠️ No unsubscribe link found\n")
        parts.append("\n")
    return "".join(parts)


def format_unsubscribe_info(info: UnsubscribeInfo) -> str:
    result = f"*Unsubscribe Info for:* {info.email.subject}\n"
    result += f"*From:* {info.email.sender}\n\n"

    if info.has_unsubscribe:
        if info.unsubscribe_links:
            result += "*Unsubscribe Links:*\n"
            for link in info.unsubscribe_links:
                result += f"• {link}\n"
        if info.unsubscribe_email:
            result += f"\n*Unsubscribe Email:* {info.unsubscribe_email}"
    else:
        result += "⚠️ No unsubscribe option found in this email."
    return result
