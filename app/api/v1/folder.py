import logging
from typing import List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.api.v1.auth import require_roles
from app.core.database import get_db
from app.core.exceptions import get_error_message, internal_error
from app.models.audit_log import LogSeverity
from app.models.document import Document
from app.models.folder import Folder
from app.models.user import EDITOR_ROLES, User, UserRole
from app.schemas.common import ApiResponse
from app.schemas.document import BatchItemError, DocumentResponse
from app.schemas.folder import (
    CreateFolderRequest,
    DeleteFolderResponse,
    DeleteFoldersRequest,
    DeleteFoldersResponse,
    FolderDetailResponse,
    FolderListResponse,
    FolderResponse,
    FolderSummary,
    UpdateFolderRequest,
)
from app.utils.audit import log_action, save_to_archive
from app.utils.folder_utils import (
    FolderConflictError,
    cascade_delete_folder,
    detach_children,
    folder_snapshot,
    get_folder_by_name,
    is_ancestor,
    owned_documents,
    rename_folder,
)
from app.utils.query_utils import build_document_filters, paginate

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("", response_model=ApiResponse[FolderListResponse])
def list_folders(db: Session = Depends(get_db)):
    try:
        folders = db.query(Folder).order_by(Folder.name.asc()).all()
        total_docs = db.query(Document).count()
        data = FolderListResponse(
            total_docs=total_docs,
            folders=[FolderResponse.model_validate(f) for f in folders],
        )
    except Exception as e:
        raise internal_error(db, e, "Failed to fetch folders")

    return {"success": True, "data": data}


@router.get("/{folder:path}/documents", response_model=ApiResponse[List[DocumentResponse]])
def get_folder_documents(
    folder: str,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    doc_search: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Document).filter(
            *build_document_filters(search=doc_search, folder=folder)
        )
        documents, pagination = paginate(query, page, limit)
        data = [DocumentResponse.model_validate(d) for d in documents]
    except Exception as e:
        raise internal_error(db, e, "Failed to fetch folder documents")

    return {"success": True, "data": data, "pagination": pagination}


# Must stay after the "/documents" route
@router.get("/{name:path}", response_model=ApiResponse[FolderDetailResponse])
def get_folder(name: str, db: Session = Depends(get_db)):
    folder = get_folder_by_name(db, name)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")
    return {"success": True, "data": FolderDetailResponse.model_validate(folder)}


@router.post(
    "",
    response_model=ApiResponse[FolderResponse],
    status_code=status.HTTP_201_CREATED,
)
def create_folder(
    body: CreateFolderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    if get_folder_by_name(db, body.name):
        raise HTTPException(status_code=409, detail="Folder already exists")

    if body.parent_id is not None and not db.get(Folder, body.parent_id):
        raise HTTPException(status_code=404, detail="Parent folder not found")

    try:
        folder = Folder(
            name=body.name,
            description=body.description,
            parent_id=body.parent_id,
            created_by=current_user.id,
        )
        db.add(folder)
        db.commit()
    except IntegrityError:
        db.rollback()
        raise HTTPException(status_code=409, detail="Folder already exists")
    except Exception as e:
        raise internal_error(db, e, "Failed to create folder")

    db.refresh(folder)
    data = FolderResponse.model_validate(folder)
    log_action(
        db,
        title=f"Folder created - {folder.name}",
        description=folder.description or "",
        meta={"folderId": folder.id},
        user_id=current_user.id,
    )
    return {"success": True, "message": "Folder created successfully", "data": data}


def _apply_folder_update(
    db: Session, folder_id: int, updates: dict, current_user: User
):
    """Apply ``updates`` to a folder, cascading a rename to its documents."""
    folder = db.get(Folder, folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")

    original = {
        "name": folder.name,
        "description": folder.description,
        "is_default": folder.is_default,
    }

    parent_id = updates.get("parent_id")
    if parent_id is not None:
        if not db.get(Folder, parent_id):
            raise HTTPException(status_code=404, detail="Parent folder not found")
        if is_ancestor(db, folder.id, parent_id):
            raise HTTPException(
                status_code=400, detail="Cannot move to itself or ancestor"
            )

    try:
        repointed = 0
        if "name" in updates:
            repointed = rename_folder(db, folder, updates.pop("name"))
        for key, value in updates.items():
            setattr(folder, key, value)
        folder.updated_by = current_user.id
        db.commit()
    except (FolderConflictError, IntegrityError):
        db.rollback()
        raise HTTPException(status_code=409, detail="Folder name already exists")
    except Exception as e:
        raise internal_error(db, e, "Failed to update folder")

    db.refresh(folder)
    return folder, original, repointed


@router.put("/{folder_id}", response_model=ApiResponse[FolderDetailResponse])
def update_folder(
    folder_id: int,
    body: UpdateFolderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    updates = body.model_dump(exclude_unset=True)
    for key in ("name", "is_default"):
        if updates.get(key) is None:
            updates.pop(key, None)

    folder, original, repointed = _apply_folder_update(db, folder_id, updates, current_user)

    changes = {}
    title = ""
    description = ""
    if folder.name != original["name"]:
        changes["name"] = {"from": original["name"], "to": folder.name}
        title = f"Name changed from {original['name']} to {folder.name}. "
    if folder.description != original["description"]:
        changes["description"] = {"from": original["description"], "to": folder.description}
        description += f"Description changed from {original['description']} to {folder.description}. "
    if folder.is_default != original["is_default"]:
        changes["is_default"] = {"from": original["is_default"], "to": folder.is_default}
        description += (
            "Folder made default"
            if folder.is_default
            else "Folder changed from being system default"
        )

    data = FolderDetailResponse.model_validate(folder)
    log_action(
        db,
        title=title or f"Folder [{folder.name}] updated.",
        description=description,
        meta={"folderId": folder_id, "changes": changes, "documentsRenamed": repointed},
        user_id=current_user.id,
    )
    return {"success": True, "message": "Folder updated successfully", "data": data}


@router.patch("/{folder_id}", response_model=ApiResponse[FolderDetailResponse])
def patch_folder(
    folder_id: int,
    body: UpdateFolderRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(*EDITOR_ROLES)),
):
    updates = body.model_dump(exclude_none=True)
    fields = list(updates.keys())

    folder, _, repointed = _apply_folder_update(db, folder_id, updates, current_user)

    data = FolderDetailResponse.model_validate(folder)
    log_action(
        db,
        title=f"Folder [{folder.name}] updated",
        description="Folder was partially updated",
        meta={"folderId": folder_id, "updates": fields, "documentsRenamed": repointed},
        user_id=current_user.id,
    )
    return {"success": True, "message": "Folder updated successfully", "data": data}


@router.delete("/{folder_id}", response_model=ApiResponse[DeleteFolderResponse])
def delete_folder(
    folder_id: int,
    cascade: bool = Query(True, description="Also delete the folder's documents and stored files"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.ADMIN, UserRole.SUPER_ADMIN)),
):
    if cascade and current_user.role != UserRole.SUPER_ADMIN:
        raise HTTPException(
            status_code=403,
            detail="Unauthorized. Only super admins can delete folders.",
        )

    folder = db.get(Folder, folder_id)
    if not folder:
        raise HTTPException(status_code=404, detail="Folder not found")

    if not cascade:
        return _delete_empty_folder(db, folder, current_user)

    summary = FolderSummary(id=folder.id, name=folder.name)
    try:
        documents = cascade_delete_folder(db, folder, current_user.id)
        db.commit()
    except Exception as e:
        raise internal_error(db, e, "Failed to delete folder.")

    names = [doc["name"] for doc in documents]
    log_action(
        db,
        title="Folder deleted",
        description=(
            f"{len(documents)} docs deleted: [{', '.join(str(n) for n in names)}]."
            if documents
            else "No documents to delete."
        ),
        severity=LogSeverity.CRITICAL,
        meta={
            "folderId": summary.id,
            "folderName": summary.name,
            "documentsDeleted": len(documents),
            "documentNames": names,
        },
        user_id=current_user.id,
    )
    return {
        "success": True,
        "message": "Folder deleted successfully",
        "data": DeleteFolderResponse(folder=summary, documents_deleted=len(documents)),
    }


def _delete_empty_folder(db: Session, folder: Folder, current_user: User):
    remaining = len(owned_documents(db, folder))
    if remaining:
        raise HTTPException(
            status_code=400,
            detail=(
                f"Cannot delete folder with documents ({remaining}). "
                "Move or delete documents first."
            ),
        )

    summary = FolderSummary(id=folder.id, name=folder.name)
    try:
        save_to_archive(
            db,
            data=folder_snapshot(folder),
            original_id=folder.id,
            source_collection="folders",
            reason="Empty folder deleted",
            user_id=current_user.id,
        )
        detach_children(db, folder)
        db.delete(folder)
        db.commit()
    except Exception as e:
        raise internal_error(db, e, "Failed to delete folder")

    log_action(
        db,
        title="Folder deleted",
        description=f"Empty folder {summary.name} deleted.",
        severity=LogSeverity.WARNING,
        meta={"folderId": summary.id, "folderName": summary.name},
        user_id=current_user.id,
    )
    return {
        "success": True,
        "message": "Folder deleted successfully",
        "data": DeleteFolderResponse(folder=summary, documents_deleted=0),
    }


@router.delete("", response_model=ApiResponse[DeleteFoldersResponse])
def delete_folders(
    body: DeleteFoldersRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.SUPER_ADMIN)),
):
    if not body.folder_ids:
        raise HTTPException(status_code=400, detail="No folder IDs provided")

    results = DeleteFoldersResponse()
    for folder_id in body.folder_ids:
        try:
            folder = db.get(Folder, folder_id)
            if not folder:
                results.failed.append(BatchItemError(id=folder_id, error="Folder not found"))
                continue
            documents = cascade_delete_folder(db, folder, current_user.id)
            db.commit()
            results.successful.append(folder_id)
            results.documents_deleted += len(documents)
        except Exception as e:
            db.rollback()
            logger.warning(f"Bulk delete: folder {folder_id} failed: {e}")
            results.failed.append(
                BatchItemError(id=folder_id, error=get_error_message(e, "Unknown error"))
            )

    log_action(
        db,
        title=f"Bulk folder deletion - {len(results.successful)} folders",
        description=(
            f"{len(results.successful)} folders deleted, {len(results.failed)} failed"
        ),
        severity=LogSeverity.WARNING if results.failed else LogSeverity.CRITICAL,
        meta=results.model_dump(by_alias=True),
        user_id=current_user.id,
    )
    return {"success": True, "message": "Bulk folder deletion completed", "data": results}
