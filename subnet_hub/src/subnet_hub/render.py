"""
Output generators: Atom feed, OPML directory and the hub's HTML pages.

The Atom feed is the federation contract; peers read it back with the core
parser, so every field written here must be one ``parse_feed`` understands.
"""

import re
from datetime import datetime, timezone
from email.utils import format_datetime
from html import escape
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse
from xml.etree import ElementTree as ET

from .manifest import HubManifest, Node
from .normalize import format_timestamp
from .sources.base import Entry, PeerMeta

ATOM_NS = "http://www.w3.org/2005/Atom"
XML_DECLARATION = '<?xml version="1.0" encoding="utf-8"?>\n'

TEMPLATE_DIR = Path(__file__).parent / "templates"

_GITHUB_PAGES_RE = re.compile(r"^(.+)\.github\.io$", re.IGNORECASE)


def _serialize(root: ET.Element) -> str:
    ET.indent(root, space="  ")
    return XML_DECLARATION + ET.tostring(root, encoding="unicode") + "\n"


def generate_atom_feed(
    manifest: HubManifest,
    entries: list[Entry],
    now: Optional[datetime] = None,
) -> str:
    """
    Render the merged entries as an Atom 1.0 document.

    Entries without a timestamp are written with the build time. Each entry
    carries its provenance as ``<category term>``.
    """
    now_iso = format_timestamp(now or datetime.now(timezone.utc))
    hub = manifest.hub

    feed = ET.Element("feed", xmlns=ATOM_NS)
    ET.SubElement(feed, "title").text = manifest.label
    if manifest.description:
        ET.SubElement(feed, "subtitle").text = manifest.description
    ET.SubElement(feed, "link", href=f"{hub}/feed.xml", rel="self")
    ET.SubElement(feed, "link", href=hub, rel="alternate")
    ET.SubElement(feed, "id").text = hub
    ET.SubElement(feed, "updated").text = now_iso

    for entry in entries:
        element = ET.SubElement(feed, "entry")
        ET.SubElement(element, "title").text = entry.title
        ET.SubElement(element, "link", href=entry.link, rel="alternate")
        ET.SubElement(element, "id").text = entry.link
        ET.SubElement(element, "updated").text = entry.published_iso or now_iso
        if entry.author:
            author = ET.SubElement(element, "author")
            ET.SubElement(author, "name").text = entry.author
        ET.SubElement(element, "category", term=entry.provenance_name or hub)

    return _serialize(feed)


def generate_opml(
    manifest: HubManifest,
    nodes: list[Node],
    now: Optional[datetime] = None,
) -> str:
    """Render an OPML 2.0 directory of the given (active) nodes."""
    title = manifest.label

    opml = ET.Element("opml", version="2.0")
    head = ET.SubElement(opml, "head")
    ET.SubElement(head, "title").text = title
    ET.SubElement(head, "dateCreated").text = format_datetime(
        now or datetime.now(timezone.utc), usegmt=True
    )

    body = ET.SubElement(opml, "body")
    group = ET.SubElement(body, "outline", text=title, title=title)
    for node in nodes:
        ET.SubElement(
            group,
            "outline",
            type="rss",
            text=node.name,
            title=node.name,
            xmlUrl=node.feed,
            htmlUrl=node.url,
        )

    return _serialize(opml)


def derive_repo_url(hub_url: str) -> Optional[str]:
    """``https://user.github.io/repo`` -> ``https://github.com/user/repo``."""
    parsed = urlparse(hub_url)
    match = _GITHUB_PAGES_RE.match(parsed.hostname or "")
    if not match:
        return None
    return f"https://github.com/{match.group(1)}{parsed.path.rstrip('/')}"


def render_template(name: str, values: dict[str, str]) -> str:
    """Fill ``{{key}}`` placeholders; values must already be escaped."""
    text = (TEMPLATE_DIR / name).read_text(encoding="utf-8")
    for key, value in values.items():
        text = text.replace(f"{{{{{key}}}}}", value)
    return text


def format_display_date(dt: datetime) -> str:
    """``Jan 1, 2024``"""
    dt = dt.astimezone(timezone.utc)
    return f"{dt:%b} {dt.day}, {dt.year}"


def _node_item(node: Node) -> str:
    return (
        f'      <li><a href="{escape(node.url)}">{escape(node.name)}</a>'
        f' &mdash; <a href="{escape(node.feed)}">feed</a></li>'
    )


def _post_item(entry: Entry) -> str:
    line = f'      <li><a href="{escape(entry.link)}">{escape(entry.title)}</a>'
    if entry.published is not None:
        line += (
            f' <time datetime="{entry.published_iso}">'
            f"{escape(format_display_date(entry.published))}</time>"
        )
    if entry.author:
        line += f" &middot; {escape(entry.author)}"
    return line + "</li>"


def _peer_item(peer: PeerMeta) -> str:
    meta = []
    if peer.node_count:
        meta.append(f"{peer.node_count} node{'' if peer.node_count == 1 else 's'}")
    if peer.description:
        meta.append(escape(peer.description))
    suffix = f" &mdash; {' &middot; '.join(meta)}" if meta else ""
    return f'      <li><a href="{escape(peer.hub)}">{escape(peer.name)}</a>{suffix}</li>'


def generate_index_html(
    manifest: HubManifest,
    active_nodes: list[Node],
    entries: list[Entry],
    peers: list[PeerMeta],
    post_limit: int = 50,
) -> str:
    """Render the hub's landing page."""
    description = ""
    if manifest.description:
        description = f'\n    <p class="desc">{escape(manifest.description)}</p>'

    peer_section = ""
    if peers:
        peer_items = "\n".join(_peer_item(p) for p in peers)
        peer_section = (
            "\n    <section>\n      <h2>Peers</h2>\n      <ul>\n"
            f"{peer_items}\n      </ul>\n    </section>"
        )

    return render_template("index.html", {
        "title": escape(manifest.label),
        "description": description,
        "repoUrl": escape(derive_repo_url(manifest.hub) or manifest.hub),
        "hubUrl": escape(manifest.hub),
        "nodeList": "\n".join(_node_item(n) for n in active_nodes),
        "postList": "\n".join(_post_item(e) for e in entries[:post_limit]),
        "peerSection": peer_section,
    })


def generate_join_html(manifest: HubManifest) -> str:
    """Render the page that explains how to join the subnet."""
    repo_url = derive_repo_url(manifest.hub)
    edit_url = f"{repo_url}/edit/main/subnet.json" if repo_url else manifest.hub

    return render_template("join.html", {
        "title": escape(manifest.label),
        "hubUrl": escape(manifest.hub),
        "editUrl": escape(edit_url),
    })
