"""
Folder membership bookkeeping.

A document belongs to a folder when the folder lists it in ``folder_documents``
and the document's ``folder`` column holds the folder's name. The helpers below
change both sides together; callers own the transaction and commit once the
whole logical operation is staged.
"""

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.document import Document
from app.models.folder import Folder
from app.schemas.document import DocumentResponse
from app.schemas.folder import FolderResponse
from app.utils.audit import save_to_archive
from app.utils.storage import delete_assets

logger = logging.getLogger(__name__)


class FolderConflictError(Exception):
    def __init__(self, name: str):
        super().__init__(f"Folder '{name}' already exists")
        self.name = name


def get_folder_by_name(db: Session, name: str) -> Optional[Folder]:
    return db.query(Folder).filter(Folder.name == name).first()


def find_or_create_folder(db: Session, name: str, user_id: Optional[int] = None) -> Folder:
    folder = get_folder_by_name(db, name)
    if folder:
        return folder

    folder = Folder(name=name, created_by=user_id)
    db.add(folder)
    try:
        db.flush()
    except IntegrityError as e:
        # Another request created the same name between our lookup and insert
        raise FolderConflictError(name) from e

    logger.info(f"Folder '{name}' created implicitly")
    return folder


def add_to_folder(
    db: Session, document: Document, folder_name: str, user_id: Optional[int] = None
) -> Folder:
    """Point ``document`` at ``folder_name`` and list it there (creating the folder if needed)."""
    folder = find_or_create_folder(db, folder_name, user_id)
    document.folder = folder.name
    if document not in folder.documents:
        folder.documents.append(document)
    return folder


def pull_from_folders(document: Document) -> List[str]:
    """Remove ``document`` from every folder listing it; returns the folder names."""
    names = [owner.name for owner in document.folders]
    document.folders.clear()
    return names


def move_to_folder(
    db: Session, document: Document, folder_name: str, user_id: Optional[int] = None
) -> Folder:
    pull_from_folders(document)
    return add_to_folder(db, document, folder_name, user_id)


def releasable_assets(db: Session, documents: List[Document]) -> List[dict]:
    """Assets of ``documents`` that no surviving document (e.g. a copy) still uses."""
    public_ids = {doc.public_id for doc in documents if doc.public_id}
    if not public_ids:
        return []

    doomed_ids = [doc.id for doc in documents]
    shared = {
        row[0]
        for row in db.query(Document.public_id)
        .filter(Document.public_id.in_(public_ids), Document.id.notin_(doomed_ids))
        .all()
    }
    return [
        doc.as_asset()
        for doc in documents
        if doc.public_id and doc.public_id not in shared
    ]


def owned_documents(db: Session, folder: Folder) -> List[Document]:
    """Documents listed by the folder plus any still pointing at its name."""
    listed = list(folder.documents)
    listed_ids = {doc.id for doc in listed}
    named = db.query(Document).filter(Document.folder == folder.name).all()
    return listed + [doc for doc in named if doc.id not in listed_ids]


def rename_folder(db: Session, folder: Folder, new_name: str) -> int:
    """
    Rename ``folder`` and re-point every document it owns at the new name.

    Raises FolderConflictError when another folder already uses ``new_name``.
    Returns the number of re-pointed documents.
    """
    if new_name == folder.name:
        return 0

    clash = (
        db.query(Folder)
        .filter(Folder.name == new_name, Folder.id != folder.id)
        .first()
    )
    if clash:
        raise FolderConflictError(new_name)

    documents = owned_documents(db, folder)
    for doc in documents:
        doc.folder = new_name
        if doc not in folder.documents:
            folder.documents.append(doc)

    folder.name = new_name
    return len(documents)


def detach_children(db: Session, folder: Folder) -> int:
    """Re-parent sub folders of ``folder`` onto its own parent."""
    children = db.query(Folder).filter(Folder.parent_id == folder.id).all()
    for child in children:
        child.parent_id = folder.parent_id
    return len(children)


# helper: cycle detection
def is_ancestor(db: Session, ancestor_id: int, target_id: int) -> bool:
    query = """
    WITH RECURSIVE ancestors AS (
        SELECT id, parent_id FROM folders WHERE id = :target_id
        UNION ALL
        SELECT f.id, f.parent_id
        FROM folders f
        INNER JOIN ancestors a ON f.id = a.parent_id
    )
    SELECT 1 FROM ancestors WHERE id = :ancestor_id LIMIT 1;
    """
    result = db.execute(
        text(query), {"ancestor_id": ancestor_id, "target_id": target_id}
    )
    return result.scalar() is not None


def document_snapshot(document: Document) -> dict:
    return DocumentResponse.model_validate(document).model_dump(mode="json")


def folder_snapshot(folder: Folder) -> dict:
    return FolderResponse.model_validate(folder).model_dump(mode="json")


def cascade_delete_folder(
    db: Session, folder: Folder, user_id: Optional[int] = None
) -> List[dict]:
    """
    Stage deletion of ``folder`` and every document it owns.

    Stored binaries are removed first, so a storage failure raises before any
    local row is touched. Returns snapshots of the deleted documents.
    """
    documents = owned_documents(db, folder)

    delete_assets(releasable_assets(db, documents))

    snapshot = folder_snapshot(folder)
    snapshot["documents"] = [document_snapshot(doc) for doc in documents]
    save_to_archive(
        db,
        data=snapshot,
        original_id=folder.id,
        source_collection="folders",
        reason="Folder deleted with its documents",
        user_id=user_id,
    )

    for doc in documents:
        pull_from_folders(doc)
        db.delete(doc)
    detach_children(db, folder)
    db.delete(folder)
    db.flush()
    return snapshot["documents"]
