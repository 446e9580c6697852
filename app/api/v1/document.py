import logging
from collections import Counter
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.v1.auth import require_roles
from app.core.database import get_db
from app.core.exceptions import get_error_message, internal_error
from app.models.audit_log import LogSeverity
from app.models.document import Document
from app.models.user import EDITOR_ROLES, User
from app.schemas.common import ApiResponse
from app.schemas.document import (
    BatchItemError,
    CreateDocumentRequest,
    DeleteDocumentsResponse,
    DocumentRef,
    DocumentResponse,
    MoveCopyOperation,
    MoveCopyResponse,
    MoveCopyResult,
    UpdateDocumentRequest,
)
from app.utils.audit import log_action, save_to_archive
from app.utils.folder_utils import (
    FolderConflictError,
    add_to_folder,
    document_snapshot,
    move_to_folder,
    pull_from_folders,
    releasable_assets,
)
from app.utils.query_utils import build_document_filters, paginate, parse_tags
from app.utils.storage import delete_assets

logger = logging.getLogger(__name__)

router = APIRouter()

# Columns carried over when a document is copied into another folder
COPY_FIELDS = (
    "name",
    "original_filename",
    "description",
    "format",
    "public_id",
    "secure_url",
    "url",
    "resource_type",
    "bytes",
)


def _remove_document(db: Session, document: Document, user_id: int, reason: str) -> dict:
    """Stage removal of a document: stored file, archive snapshot, memberships, row."""
    delete_assets(releasable_assets(db, [document]))

    snapshot = document_snapshot(document)
    save_to_archive(
        db,
        data=snapshot,
        original_id=document.id,
        source_collection="documents",
        reason=reason,
        user_id=user_id,
    )
    pull_from_folders(document)
    db.delete(document)
    return snapshot


@router.get("", response_model=ApiResponse[List[DocumentResponse]])
def list_documents(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    doc_search: Optional[str] = Query(None),
    folder: Optional[str] = Query(None),
    tags: Optional[str] = Query(None, description="Comma separated tag list"),
    db: Session = Depends(get_db),
):
    try:
        filters = build_document_filters(
            search=doc_search, folder=folder, tags=parse_tags(tags)
        )
        documents, pagination = paginate(db.query(Document).filter(*filters), page, limit)
        data = [DocumentResponse.model_validate(d) for d in documents]
    except Exception as e:
        raise internal_error(db, e, "Failed to fetch documents")

    return {"success": True, "data": data, "pagination": pagination}


@router.post(
    "",
    response_model=ApiResponse[DocumentResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_document(
    body: CreateDocumentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    try:
        document = Document(**body.model_dump(), created_by=current_user.id)
        db.add(document)
        db.flush()
        add_to_folder(db, document, body.folder, current_user.id)
        db.commit()
    except FolderConflictError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise internal_error(db, e, "Failed to upload document")

    db.refresh(document)
    data = DocumentResponse.model_validate(document)
    log_action(
        db,
        title=f"Document uploaded to - {data.folder}",
        description=f"{data.name or data.original_filename} uploaded",
        meta={"documentId": data.id, "folder": data.folder},
        user_id=current_user.id,
    )
    return {"success": True, "message": "New Document Uploaded", "data": data}


@router.put("/move-copy", response_model=MoveCopyResponse)
def move_copy_documents(
    operations: List[MoveCopyOperation],
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    """
    Move or copy documents between folders.

    Each operation commits on its own; a failing one is rolled back and
    reported under ``failed`` while the rest of the batch carries on.
    ``data`` lists the applied operations.
    """
    if not operations:
        raise HTTPException(status_code=400, detail="No operations provided")

    processed: List[MoveCopyResult] = []
    failed: List[BatchItemError] = []

    for op in operations:
        source_id = op.file.id
        try:
            source = db.get(Document, source_id)
            if not source:
                failed.append(BatchItemError(id=source_id, error="Document not found"))
                continue

            if op.action_type == "Move":
                move_to_folder(db, source, op.destination_folder, current_user.id)
                source.updated_by = current_user.id
                db.commit()
                processed.append(
                    MoveCopyResult(
                        id=source_id, action="Moved", destination=op.destination_folder
                    )
                )
            else:
                copy = Document(
                    **{field: getattr(source, field) for field in COPY_FIELDS},
                    tags=list(source.tags or []),
                    folder=op.destination_folder,
                    copied_from=source_id,
                    created_by=current_user.id,
                )
                db.add(copy)
                db.flush()
                add_to_folder(db, copy, op.destination_folder, current_user.id)
                copy_id = copy.id
                db.commit()
                processed.append(
                    MoveCopyResult(
                        id=copy_id,
                        action="Copied",
                        destination=op.destination_folder,
                        source_id=source_id,
                    )
                )
        except Exception as e:
            db.rollback()
            logger.warning(f"{op.action_type} of document {source_id} failed: {e}")
            failed.append(
                BatchItemError(id=source_id, error=get_error_message(e, "Operation failed"))
            )

    counts = Counter(result.action for result in processed)
    log_action(
        db,
        title=f"Documents move/copy operation - {len(processed)} files",
        description=(
            f"{counts.get('Moved', 0)} moved, {counts.get('Copied', 0)} copied, "
            f"{len(failed)} failed"
        ),
        severity=LogSeverity.WARNING if failed else LogSeverity.INFO,
        meta={
            "counts": dict(counts),
            "operations": [r.model_dump(by_alias=True) for r in processed],
            "failed": [f.model_dump() for f in failed],
        },
        user_id=current_user.id,
    )
    return {
        "success": True,
        "message": "Move/copy operations completed",
        "data": processed,
        "failed": failed,
    }


@router.get("/{document_id}", response_model=ApiResponse[DocumentResponse])
def get_document(document_id: int, db: Session = Depends(get_db)):
    document = db.get(Document, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return {"success": True, "data": DocumentResponse.model_validate(document)}


@router.put("/{document_id}", response_model=ApiResponse[DocumentResponse])
def update_document(
    document_id: int,
    body: UpdateDocumentRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    document = db.get(Document, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    updates = body.model_dump(exclude_unset=True)
    for key in ("folder", "tags"):
        if updates.get(key) is None:
            updates.pop(key, None)
    new_folder = updates.pop("folder", None)

    try:
        for key, value in updates.items():
            setattr(document, key, value)
        document.updated_by = current_user.id

        listed_in = [owner.name for owner in document.folders]
        if new_folder is not None and (
            new_folder != document.folder or listed_in != [new_folder]
        ):
            move_to_folder(db, document, new_folder, current_user.id)
        db.commit()
    except FolderConflictError as e:
        db.rollback()
        raise HTTPException(status_code=409, detail=str(e))
    except Exception as e:
        raise internal_error(db, e, "Failed to update document")

    db.refresh(document)
    return {
        "success": True,
        "message": "Document updated successfully",
        "data": DocumentResponse.model_validate(document),
    }


@router.delete("/{document_id}", response_model=ApiResponse[DocumentResponse])
def delete_document(
    document_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    document = db.get(Document, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")

    try:
        snapshot = _remove_document(db, document, current_user.id, "Document deleted")
        db.commit()
    except Exception as e:
        raise internal_error(db, e, "Failed to delete file.")

    log_action(
        db,
        title=f"Document deleted - {snapshot['name'] or snapshot['original_filename']}",
        description=f"{snapshot['original_filename']} deleted from {snapshot['folder']}",
        severity=LogSeverity.CRITICAL,
        meta={"documentId": document_id, "folder": snapshot["folder"]},
        user_id=current_user.id,
    )
    return {"success": True, "message": "Delete successful", "data": snapshot}


@router.delete("", response_model=ApiResponse[DeleteDocumentsResponse])
def delete_documents(
    documents: List[DocumentRef],
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    if not documents:
        raise HTTPException(status_code=400, detail="No documents provided for deletion")

    deleted: List[int] = []
    errors: List[BatchItemError] = []

    for ref in documents:
        try:
            document = db.get(Document, ref.id)
            if not document:
                errors.append(BatchItemError(id=ref.id, error="Document not found"))
                continue
            _remove_document(db, document, current_user.id, "Document bulk deleted")
            db.commit()
            deleted.append(ref.id)
        except Exception as e:
            db.rollback()
            logger.warning(f"Bulk delete: document {ref.id} failed: {e}")
            errors.append(
                BatchItemError(id=ref.id, error=get_error_message(e, "Failed to delete file"))
            )

    log_action(
        db,
        title=f"Documents deleted - {len(deleted)} files",
        description=f"{len(deleted)} documents deleted, {len(errors)} failed",
        severity=LogSeverity.WARNING if errors else LogSeverity.INFO,
        meta={"successful": deleted, "failed": [e.model_dump() for e in errors]},
        user_id=current_user.id,
    )
    return {
        "success": True,
        "message": "Delete operation completed",
        "data": DeleteDocumentsResponse(
            deleted=len(deleted), failed=len(errors), errors=errors
        ),
    }
