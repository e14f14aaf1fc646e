"""
Job URL normalization used as the canonical URL dedup key.
"""
from urllib.parse import parse_qsl, urlencode, urlparse, urlunparse

TRACKING_KEYS = {"ref", "refid", "trackingid", "fbclid", "gclid"}


def _is_tracking_param(key: str) -> bool:
    lowered = key.lower()
    return lowered.startswith("utm_") or lowered in TRACKING_KEYS


def normalize_job_url(raw_url: str) -> str:
    """
    Conservative normalization so two links to the same posting collide.

    Lower-cases scheme and host, drops default ports, tracking parameters,
    fragments and trailing slashes. Input that is not an absolute URL is
    returned stripped but otherwise unchanged.
    """
    candidate = raw_url.strip()
    try:
        parsed = urlparse(candidate)
    except ValueError:
        return candidate

    if not parsed.scheme or not parsed.netloc:
        return candidate

    scheme = parsed.scheme.lower()
    netloc = parsed.netloc.lower()

    if ":" in netloc:
        host, port = netloc.rsplit(":", maxsplit=1)
        if (scheme == "http" and port == "80") or (scheme == "https" and port == "443"):
            netloc = host

    path = parsed.path.rstrip("/")

    query = urlencode(
        [
            (key, value)
            for key, value in parse_qsl(parsed.query, keep_blank_values=True)
            if not _is_tracking_param(key)
        ],
        doseq=True,
    )

    return urlunparse((scheme, netloc, path, "", query, ""))
