"""Pure path helpers.

Everything here is string work on uris; nothing touches the filesystem.
A uri is either a local path (optionally written as a ``file://`` URL) or a
remote ``http(s)://`` URL.
"""

from __future__ import annotations

import uuid
from pathlib import Path
from urllib.parse import unquote, urlparse

_REMOTE_SCHEMES = {"http", "https"}


def file_name(uri: str | Path) -> str:
    """Last path segment with any query string dropped."""
    name = str(uri).strip().replace("\\", "/").split("/")[-1]
    return name.split("?")[0]


def path(uri: str | Path) -> str:
    """Everything before the last path segment, or '' for a bare name."""
    if not uri:
        return ""
    parts = str(uri).strip().replace("\\", "/").split("/")
    if len(parts) > 1:
        return "/".join(parts[:-1])
    return ""


def extension(uri: str | Path) -> str:
    """Lower-cased extension without the dot."""
    parts = file_name(uri).split(".")
    if len(parts) > 1:
        return parts[-1].lower()
    return ""


def pure_file_name(uri: str | Path) -> str:
    """File name without its extension."""
    name = file_name(uri)
    parts = name.split(".")
    if len(parts) > 1:
        return ".".join(parts[:-1])
    return name


def is_remote(uri: str | Path) -> bool:
    return urlparse(str(uri).strip()).scheme.lower() in _REMOTE_SCHEMES


def is_local(uri: str | Path) -> bool:
    """True for scheme-less paths and ``file://`` URLs."""
    text = str(uri).strip()
    if not text:
        return False
    scheme = urlparse(text).scheme.lower()
    # A one-letter scheme is a Windows drive ("C:\\...")
    return scheme in ("", "file") or len(scheme) == 1


def is_full_path(uri: str | Path) -> bool:
    """True when the uri is anchored: absolute path or URL with a scheme."""
    if not uri:
        return False
    text = str(uri).strip()
    if urlparse(text).scheme.lower() in _REMOTE_SCHEMES | {"file"}:
        return True
    return Path(text).is_absolute()


def is_file_name_only(uri: str | Path) -> bool:
    if not uri:
        return False
    return "/" not in str(uri).strip().replace("\\", "/")


def to_local_path(uri: str | Path) -> str:
    """Normalize a local uri to a plain path string."""
    text = str(uri).strip()
    parsed = urlparse(text)
    if parsed.scheme.lower() == "file":
        return unquote(parsed.path)
    return text


def unique_name() -> str:
    return str(uuid.uuid4())
