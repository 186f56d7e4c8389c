from urllib.parse import urlsplit

AFFILIATE_TAGS = {
    "shopee": "af=tempo_aff",
    "lazada": "spm=tempo_aff",
    "amazon": "tag=tempo-20",
}


def generate_affiliate_link(original_url: str) -> str:
    """Append the store's affiliate tag; unknown stores and bad URLs pass through."""
    try:
        parts = urlsplit(original_url)
    except ValueError:
        return original_url

    hostname = parts.hostname or ""
    if parts.scheme not in ("http", "https") or not hostname:
        return original_url

    for domain, tag in AFFILIATE_TAGS.items():
        if domain in hostname:
            base, hash_mark, fragment = original_url.partition("#")
            if base.endswith(("?", "&")):
                separator = ""
            else:
                separator = "&" if parts.query else "?"
            return f"{base}{separator}{tag}{hash_mark}{fragment}"

    return original_url
