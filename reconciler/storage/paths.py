from urllib.parse import parse_qs, unquote, urlparse

_SIGNATURE_PARAMS = ("X-Amz-Signature", "Signature", "token")


def object_key(user_id: str, filename: str) -> str:
    """Where a document's file lives: one folder per user."""
    return f"{user_id}/{filename}"


def is_signed_url(reference: str) -> bool:
    """True for an http(s) URL that already carries a signature."""
    parsed = urlparse(reference)
    if parsed.scheme not in ("http", "https"):
        return False
    query = parse_qs(parsed.query)
    return any(param in query for param in _SIGNATURE_PARAMS)


def object_key_from_reference(reference: str, bucket: str) -> str:
    """Resolve a stored file reference to an object key inside ``bucket``.

    Accepts a bare key, ``bucket/key``, ``s3://bucket/key`` and http(s) URLs in
    virtual-host (``bucket.s3...``), path (``.../bucket/key``) or
    ``/object/<kind>/bucket/key`` form.
    """
    parsed = urlparse(reference)

    if parsed.scheme == "s3":
        return unquote(parsed.path.lstrip("/"))

    if parsed.scheme in ("http", "https"):
        path = unquote(parsed.path.lstrip("/"))
        if parsed.netloc.startswith(f"{bucket}."):
            return path
        marker = f"/{bucket}/"
        full = f"/{path}"
        if marker in full:
            return full.split(marker, 1)[1]
        return path

    key = reference.lstrip("/")
    if key.startswith(f"{bucket}/"):
        return key[len(bucket) + 1:]
    return key
