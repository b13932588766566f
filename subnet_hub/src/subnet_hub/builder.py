"""
Build orchestration: manifest in, static site out.

1. Load the manifest (fatal if missing or invalid)
2. Aggregate (verify nodes, fetch node and peer feeds, merge, sort)
3. Write feed.xml, subnet.opml, index.html, join/index.html, subnet.json
"""

from pathlib import Path
from typing import Optional

import httpx

from .aggregator import BuildResult, HubAggregator, generate_build_id
from .config import get_settings
from .errors import SiteWriteError
from .logging_conf import build_context, get_logger
from .manifest import load_manifest
from .site import write_site

logger = get_logger(__name__)


async def run_build(
    manifest_path: Optional[str | Path] = None,
    output_dir: Optional[str | Path] = None,
    client: Optional[httpx.AsyncClient] = None,
) -> BuildResult:
    """
    Execute one full hub build.

    Args:
        manifest_path: Manifest file (defaults to settings)
        output_dir: Site output directory (defaults to settings)
        client: Shared HTTP client

    Returns:
        The aggregation result that was written

    Raises:
        ManifestError: manifest missing or invalid
        SiteWriteError: output could not be written
    """
    settings = get_settings()
    manifest_path = Path(manifest_path or settings.manifest_path)
    output_dir = Path(output_dir or settings.output_dir)

    manifest = load_manifest(manifest_path)

    with build_context(generate_build_id()) as build_id:
        result = await HubAggregator(manifest, client=client).run(build_id)

        try:
            write_site(
                result,
                manifest_path,
                output_dir,
                post_limit=settings.index_post_limit,
            )
        except SiteWriteError as e:
            logger.error("site_write_failed", output=str(output_dir), error=str(e))
            raise

        logger.info("build_complete", output=str(output_dir), **result.summary())

    return result
