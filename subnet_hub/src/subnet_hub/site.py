"""
Writes a build's output directory.
"""

import shutil
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from .aggregator import BuildResult
from .errors import SiteWriteError
from .logging_conf import get_logger
from .render import (
    generate_atom_feed,
    generate_index_html,
    generate_join_html,
    generate_opml,
)

logger = get_logger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def write_site(
    result: BuildResult,
    manifest_path: str | Path,
    output_dir: str | Path,
    post_limit: int = 50,
    now: Optional[datetime] = None,
) -> list[Path]:
    """
    Render and write every output file for ``result``.

    The manifest is copied byte-for-byte so peers can federate against it.

    Returns:
        Paths written, in write order

    Raises:
        SiteWriteError: the output directory or a file could not be written
    """
    now = now or datetime.now(timezone.utc)
    out = Path(output_dir)
    manifest = result.manifest

    pages = [
        ("feed.xml", generate_atom_feed(manifest, result.entries, now)),
        ("subnet.opml", generate_opml(manifest, result.active_nodes, now)),
        ("index.html", generate_index_html(
            manifest, result.active_nodes, result.entries, result.peers, post_limit
        )),
        ("join/index.html", generate_join_html(manifest)),
    ]
    copies = [
        ("subnet.json", Path(manifest_path)),
        ("style.css", STATIC_DIR / "style.css"),
    ]

    written = []
    try:
        out.mkdir(parents=True, exist_ok=True)
        for name, content in pages:
            path = out / name
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
            written.append(path)
            logger.info("wrote_file", path=str(path))
        for name, source in copies:
            path = out / name
            shutil.copyfile(source, path)
            written.append(path)
            logger.info("copied_file", path=str(path))
    except OSError as e:
        raise SiteWriteError(f"cannot write {out}: {e}") from e

    return written
