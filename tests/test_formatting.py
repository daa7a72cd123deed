from mailbot.models import EmailMessage, Label, MarketingEmail, UnsubscribeInfo
from mailbot.services.formatting import (
    format_email,
    format_email_list,
    format_labels,
    format_marketing_emails,
    format_unsubscribe_info,
)


def test_format_email_list_three_items(sample_emails) -> None:
    expected = (
        "*1. Subject 1*\n"
        "   From: sender1@example.com\n"
        "   Date: 2026-10-01\n"
        "   ID: `id1`\n"
        "\n"
        "*2. Subject 2*\n"
        "   From: sender2@example.com\n"
        "   Date: 2026-10-02\n"
        "   ID: `id2`\n"
        "\n"
        "*3. Subject 3*\n"
        "   From: sender3@example.com\n"
        "   Date: 2026-10-03\n"
        "   ID: `id3`"
    )
    assert format_email_list(sample_emails) == expected


def test_format_email_list_empty() -> None:
    assert format_email_list([]) == "No emails found."


def test_format_email_with_snippet(sample_emails) -> None:
    assert format_email(sample_emails[0]) == (
        "*Subject:* Subject 1\n"
        "*From:* sender1@example.com\n"
        "*Date:* 2026-10-01\n"
        "*ID:* `id1`\n"
        "\n_Snippet 1_"
    )


def test_format_email_body_truncated_at_500() -> None:
    email = EmailMessage(id="x", subject="s", sender="f", date="d", snippet="snip", body="a" * 600)
    rendered = format_email(email, include_body=True)
    assert rendered.endswith("\n\n>>> " + "a" * 500 + "...")
    assert "_snip_" not in rendered


def test_format_email_short_body_not_truncated() -> None:
    email = EmailMessage(id="x", subject="s", sender="f", date="d", body="a" * 500)
    assert format_email(email, include_body=True).endswith(">>> " + "a" * 500)


def test_format_email_without_body_falls_back_to_snippet() -> None:
    email = EmailMessage(id="x", subject="s", sender="f", date="d", snippet="snip", body=None)
    assert format_email(email, include_body=True).endswith("\n\n_snip_")


def test_format_labels_splits_user_and_system() -> None:
    labels = [
        Label(id="Label_1", name="Receipts", type="user"),
        Label(id="INBOX", name="INBOX", type="system"),
    ]
    assert format_labels(labels) == (
        "*Your Labels:*\n• Receipts (ID: `Label_1`)\n\n*System Labels:*\n• INBOX"
    )


def test_format_labels_empty_and_no_custom() -> None:
    assert format_labels([]) == "No labels found."
    rendered = format_labels([Label(id="INBOX", name="INBOX", type="system")])
    assert "_No custom labels_" in rendered


def test_format_marketing_emails() -> None:
    emails = [
        MarketingEmail(
            id="m1",
            subject="Big Sale",
            sender="shop@example.com",
            unsubscribe_links=["https://example.com/unsub"],
            has_unsubscribe=True,
        ),
        MarketingEmail(id="m2", subject="News", sender="news@example.com"),
    ]
    rendered = format_marketing_emails(emails)
    assert rendered.startswith("*Found 2 marketing/promotional emails:*\n\n")
    assert "🔗 Unsubscribe: https://example.com/unsub\n" in rendered
    assert "⚠️ No unsubscribe link found\n" in rendered
    assert format_marketing_emails([]) == "No marketing emails found."


def test_format_unsubscribe_info() -> None:
    info = UnsubscribeInfo(
        email=EmailMessage(id="m1", subject="Weekly", sender="list@example.com"),
        unsubscribe_links=["https://a", "https://b"],
        unsubscribe_email="unsub@example.com",
        has_unsubscribe=True,
    )
    assert format_unsubscribe_info(info) == (
        "*Unsubscribe Info for:* Weekly\n"
        "*From:* list@example.com\n\n"
        "*Unsubscribe Links:*\n• https://a\n• https://b\n"
        "\n*Unsubscribe Email:* unsub@example.com"
    )
