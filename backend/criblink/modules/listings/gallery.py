from typing import Any, Dict, List, Protocol
from criblink.core.database import QueryExecutor
import logging

logger = logging.getLogger(__name__)

GALLERY_SQL = (
    "SELECT property_id, image_url FROM property_images "
    "WHERE property_id = ANY(:property_ids) ORDER BY property_id, image_id"
)


class GalleryAttacher(Protocol):
    """Adds gallery images to listing rows, keeping their order and count"""

    async def attach(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        ...


class GalleryImageService:
    """Loads property_images for a page of listings in a single query"""

    def __init__(self, executor: QueryExecutor):
        self.executor = executor

    async def attach(self, rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        if not rows:
            return rows

        property_ids = list(dict.fromkeys(r["property_id"] for r in rows if r.get("property_id") is not None))
        images: Dict[Any, List[str]] = {}
        if property_ids:
            image_rows = await self.executor.fetch_all(GALLERY_SQL, {"property_ids": property_ids})
            for image in image_rows:
                images.setdefault(image["property_id"], []).append(image["image_url"])

        logger.debug(f"Attached gallery images for {len(images)} of {len(rows)} listings")
        return [{**row, "gallery_images": images.get(row.get("property_id"), [])} for row in rows]
