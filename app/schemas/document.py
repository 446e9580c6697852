from typing import List, Literal, Optional
from datetime import datetime
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from app.core.config import settings
from app.schemas.common import ApiResponse


class DocumentResponse(BaseModel):
    id: int = Field(..., description="Unique identifier of the document")
    name: Optional[str] = Field(None, description="Display name")
    original_filename: Optional[str] = Field(None, description="Filename at upload time")
    description: Optional[str] = None
    format: Optional[str] = Field(None, description="File format, e.g. pdf, docx")
    tags: List[str] = Field(default_factory=list)
    folder: str = Field(..., description="Name of the owning folder")
    public_id: Optional[str] = Field(None, description="Remote asset identifier")
    secure_url: Optional[str] = None
    url: Optional[str] = None
    resource_type: Optional[str] = None
    bytes: Optional[int] = None
    copied_from: Optional[int] = Field(None, description="Source document id for copies")
    created_by: Optional[int] = None
    updated_by: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class CreateDocumentRequest(BaseModel):
    name: Optional[str] = None
    original_filename: Optional[str] = None
    description: Optional[str] = None
    format: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    folder: str = Field(settings.default_folder, min_length=1, description="Target folder name")
    public_id: Optional[str] = None
    secure_url: Optional[str] = None
    url: Optional[str] = None
    resource_type: Optional[str] = None
    bytes: Optional[int] = None


class UpdateDocumentRequest(BaseModel):
    name: Optional[str] = None
    original_filename: Optional[str] = None
    description: Optional[str] = None
    format: Optional[str] = None
    tags: Optional[List[str]] = None
    folder: Optional[str] = Field(None, min_length=1)
    public_id: Optional[str] = None
    secure_url: Optional[str] = None
    url: Optional[str] = None
    resource_type: Optional[str] = None
    bytes: Optional[int] = None


class DocumentRef(BaseModel):
    """Identifies a stored document in batch requests."""

    model_config = ConfigDict(extra="ignore")

    id: int = Field(..., validation_alias=AliasChoices("id", "_id"))


class MoveCopyOperation(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file: DocumentRef
    action_type: Literal["Move", "Copy"] = Field(..., alias="actionType")
    destination_folder: str = Field(..., alias="destinationFolder", min_length=1)


class MoveCopyResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    action: str
    destination: str
    source_id: Optional[int] = Field(None, alias="sourceId")


class BatchItemError(BaseModel):
    id: Optional[int] = None
    error: str


class MoveCopyResponse(ApiResponse[List[MoveCopyResult]]):
    """Move/copy envelope; operations that could not be applied are listed in ``failed``."""

    failed: List[BatchItemError] = []


class DeleteDocumentsResponse(BaseModel):
    deleted: int
    failed: int
    errors: List[BatchItemError]
