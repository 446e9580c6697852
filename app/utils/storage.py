import logging
from typing import Iterable, List, Optional

from app.core.config import settings
from app.core.exceptions import StorageError
from app.utils.supabase_client import get_supabase

logger = logging.getLogger(__name__)


def collect_asset_paths(assets: Iterable[dict]) -> List[str]:
    """Keep only assets that actually point at a stored object."""
    paths = []
    for asset in assets:
        public_id = (asset or {}).get("public_id")
        if public_id and public_id not in paths:
            paths.append(public_id)
    return paths


def delete_assets(assets: Iterable[dict], bucket: Optional[str] = None) -> List[str]:
    """Remove stored binaries in one batched call. Raises StorageError on failure."""
    paths = collect_asset_paths(assets)
    if not paths:
        return []

    bucket_name = bucket or settings.supabase_bucket
    try:
        get_supabase().storage.from_(bucket_name).remove(paths)
    except Exception as e:
        logger.error(f"Failed to delete {len(paths)} assets from '{bucket_name}': {e}")
        raise StorageError(f"Failed to delete stored files: {e}", assets=paths) from e

    logger.info(f"Deleted {len(paths)} assets from '{bucket_name}'")
    return paths
