"""
Hub manifest (``subnet.json``) models and loader.

The on-disk document is::

    {
      "subnet": {"hub": "...", "title": "...", "description": "..."},
      "nodes": [{"name": "...", "url": "...", "feed": "..."}],
      "peers": [{"name": "...", "hub": "..."}]
    }
"""

import json
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .errors import ManifestError


def _require_absolute(url: str) -> str:
    url = url.strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ValueError(f"not an absolute http(s) URL: {url!r}")
    return url


class Node(BaseModel):
    """One member site of the subnet."""
    model_config = ConfigDict(frozen=True)

    name: str
    url: str
    feed: str

    @field_validator("name", "url", "feed")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class PeerRef(BaseModel):
    """Reference to another hub this one federates with."""
    model_config = ConfigDict(frozen=True)

    name: str
    hub: str

    @field_validator("name", "hub")
    @classmethod
    def strip(cls, v: str) -> str:
        return v.strip()


class HubManifest(BaseModel):
    """The operator's description of this hub, its nodes and its peers."""
    model_config = ConfigDict(frozen=True)

    hub: str
    title: Optional[str] = None
    description: Optional[str] = None
    nodes: list[Node] = Field(default_factory=list)
    peers: list[PeerRef] = Field(default_factory=list)

    @field_validator("hub")
    @classmethod
    def normalize_hub(cls, v: str) -> str:
        """Hub URLs are absolute and carry no trailing slash."""
        return _require_absolute(v).rstrip("/")

    @property
    def label(self) -> str:
        """Display name: title if set, otherwise the hub URL."""
        return self.title or self.hub

    @classmethod
    def from_document(cls, data: dict) -> "HubManifest":
        """
        Build from the ``subnet.json`` document shape.

        Raises:
            ManifestError: document is not a valid manifest
        """
        if not isinstance(data, dict):
            raise ManifestError("manifest must be a JSON object")
        subnet = data.get("subnet")
        if not isinstance(subnet, dict):
            raise ManifestError("manifest has no 'subnet' object")

        try:
            return cls(
                hub=subnet.get("hub", ""),
                title=subnet.get("title") or None,
                description=subnet.get("description") or None,
                nodes=data.get("nodes") or [],
                peers=data.get("peers") or [],
            )
        except ValidationError as e:
            raise ManifestError(f"invalid manifest: {e}") from e


def load_manifest(path: str | Path) -> HubManifest:
    """
    Read and validate a manifest file.

    Raises:
        ManifestError: file missing, unreadable, not JSON, or invalid
    """
    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ManifestError(f"cannot read manifest {path}: {e}") from e

    try:
        data = json.loads(text)
    except ValueError as e:
        raise ManifestError(f"manifest {path} is not valid JSON: {e}") from e

    return HubManifest.from_document(data)
