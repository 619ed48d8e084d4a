import hashlib


def generate_article_id(source_id: str, link: str, title: str) -> str:
    """Generate a stable article ID namespaced by the source that produced it."""
    digest = hashlib.sha1(f"{link}\n{title}".encode("utf-8")).hexdigest()[:12]
    return f"{source_id}-{digest}"
