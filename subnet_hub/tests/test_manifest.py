"""
Tests for manifest loading.

Tests:
- Document shape maps onto HubManifest
- Hub URL normalized, invalid hubs rejected
- Missing or malformed files raise ManifestError
"""

import json

import pytest

from subnet_hub.errors import ManifestError
from subnet_hub.manifest import HubManifest, load_manifest

DOCUMENT = {
    "subnet": {
        "hub": "https://hub.example/",
        "title": "Test Hub",
        "description": "A small subnet",
    },
    "nodes": [
        {"name": " Alice ", "url": "https://alice.example", "feed": "https://alice.example/feed.xml"},
    ],
    "peers": [{"name": "Peer", "hub": "https://peer.example"}],
}


class TestFromDocument:
    """Tests for HubManifest.from_document."""

    def test_maps_fields(self):
        manifest = HubManifest.from_document(DOCUMENT)

        assert manifest.hub == "https://hub.example"
        assert manifest.title == "Test Hub"
        assert manifest.description == "A small subnet"
        assert manifest.nodes[0].name == "Alice"
        assert manifest.peers[0].hub == "https://peer.example"

    def test_optional_sections(self):
        """Nodes, peers, title and description may all be absent."""
        manifest = HubManifest.from_document({"subnet": {"hub": "https://hub.example"}})

        assert manifest.nodes == []
        assert manifest.peers == []
        assert manifest.title is None
        assert manifest.label == "https://hub.example"

    def test_missing_subnet(self):
        with pytest.raises(ManifestError):
            HubManifest.from_document({"nodes": []})

    def test_relative_hub_rejected(self):
        with pytest.raises(ManifestError):
            HubManifest.from_document({"subnet": {"hub": "/hub"}})

    def test_node_missing_feed_rejected(self):
        with pytest.raises(ManifestError):
            HubManifest.from_document({
                "subnet": {"hub": "https://hub.example"},
                "nodes": [{"name": "x", "url": "https://x.example"}],
            })

    def test_not_an_object(self):
        with pytest.raises(ManifestError):
            HubManifest.from_document(["nope"])


class TestLoadManifest:
    """Tests for load_manifest."""

    def test_loads_file(self, tmp_path):
        path = tmp_path / "subnet.json"
        path.write_text(json.dumps(DOCUMENT), encoding="utf-8")

        assert load_manifest(path).title == "Test Hub"

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestError, match="cannot read"):
            load_manifest(tmp_path / "missing.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "subnet.json"
        path.write_text("{oops", encoding="utf-8")

        with pytest.raises(ManifestError, match="not valid JSON"):
            load_manifest(path)
