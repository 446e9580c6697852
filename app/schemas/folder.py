from __future__ import annotations
from app.schemas.document import BatchItemError, DocumentResponse
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List
from datetime import datetime


class CreateFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=1, description="The name of the folder")
    description: Optional[str] = Field(None, description="What the folder holds")
    parent_id: Optional[int] = Field(None, alias="parent", description="The parent folder id")


class UpdateFolderRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, description="The name of the folder")
    description: Optional[str] = Field(None, description="What the folder holds")
    is_default: Optional[bool] = Field(None, description="Marks a system default folder")
    parent_id: Optional[int] = Field(None, alias="parent", description="The parent folder id")


class FolderResponse(BaseModel):
    id: int = Field(..., description="The id of the folder")
    name: str = Field(..., description="The name of the folder")
    description: Optional[str] = None
    is_default: bool = False
    parent_id: Optional[int] = Field(None, description="The parent folder id")
    document_ids: List[int] = Field(default_factory=list, description="Ids of member documents")
    docs_count: int = 0
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class FolderDetailResponse(FolderResponse):
    documents: List[DocumentResponse] = []


class FolderListResponse(BaseModel):
    total_docs: int
    folders: List[FolderResponse]


class FolderSummary(BaseModel):
    id: int
    name: str


class DeleteFolderResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder: FolderSummary
    documents_deleted: int = Field(..., alias="documentsDeleted")


class DeleteFoldersRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    folder_ids: List[int] = Field(..., alias="folderIds")


class DeleteFoldersResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    successful: List[int] = []
    failed: List[BatchItemError] = []
    documents_deleted: int = Field(0, alias="documentsDeleted")
