import math
from typing import List, Optional, Tuple

from sqlalchemy import String, cast, or_
from sqlalchemy.orm import Query

from app.models.document import Document
from app.schemas.common import Pagination


def remove_empty_keys(obj: dict) -> dict:
    """Drop None, empty-string and empty-collection values from a filter dict."""
    return {
        key: value
        for key, value in obj.items()
        if value is not None and value != "" and value != [] and value != ()
    }


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def parse_tags(raw: Optional[str]) -> List[str]:
    return [tag.strip() for tag in (raw or "").split(",") if tag.strip()]


def build_document_filters(
    search: Optional[str] = None,
    folder: Optional[str] = None,
    tags: Optional[List[str]] = None,
) -> list:
    """
    Translate list/search parameters into SQLAlchemy criteria.

    ``search`` is a case-insensitive substring matched against name,
    original_filename, folder, description and tags. ``folder`` is an exact
    match and ``tags`` matches documents carrying any of the given tags.
    """
    params = remove_empty_keys({"search": search, "folder": folder, "tags": tags})
    filters = []

    if "search" in params:
        pattern = f"%{_escape_like(params['search'])}%"
        filters.append(
            or_(
                Document.name.ilike(pattern, escape="\\"),
                Document.original_filename.ilike(pattern, escape="\\"),
                Document.folder.ilike(pattern, escape="\\"),
                Document.description.ilike(pattern, escape="\\"),
                cast(Document.tags, String).ilike(pattern, escape="\\"),
            )
        )

    if "folder" in params:
        filters.append(Document.folder == params["folder"])

    if "tags" in params:
        # tags are stored as a JSON array, so match the quoted element
        filters.append(
            or_(
                *[
                    cast(Document.tags, String).like(
                        f'%"{_escape_like(tag)}"%', escape="\\"
                    )
                    for tag in params["tags"]
                ]
            )
        )

    return filters


def paginate(query: Query, page: int, limit: int) -> Tuple[list, Pagination]:
    total = query.order_by(None).count()
    items = (
        query.order_by(Document.created_at.desc(), Document.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return items, Pagination(
        page=page,
        limit=limit,
        total=total,
        pages=math.ceil(total / limit) if limit else 0,
    )
