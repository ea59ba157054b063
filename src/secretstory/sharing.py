"""Share links handed out by recipients."""

from __future__ import annotations

from urllib.parse import quote, urlencode

SHARE_TEXT = "Envoie-moi un message anonyme sur SecretStory ! 🕵️‍♀️"


def build_share_link(origin: str, username: str) -> str:
    return f"{origin.rstrip('/')}/#/to/{quote(username)}"


def social_share_urls(share_url: str, text: str = SHARE_TEXT) -> dict[str, str]:
    """Prefilled share intents, keyed by platform."""
    return {
        "whatsapp": "https://wa.me/?" + urlencode({"text": f"{text} {share_url}"}),
        "telegram": "https://t.me/share/url?" + urlencode({"url": share_url, "text": text}),
        "twitter": "https://twitter.com/intent/tweet?" + urlencode({"text": f"{text} {share_url}"}),
    }
