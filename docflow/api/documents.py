from datetime import date

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Query,
    UploadFile,
    status,
)
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from docflow.db import get_db
from docflow.schemas.common import ListResponse
from docflow.schemas.documents import (
    DocumentRead,
    DocumentStatusUpdate,
    DocumentURLResponse,
)
from docflow.services.documents import documents as doc_service

router = APIRouter(prefix="/api/documents", tags=["documents"])


@router.post("", response_model=DocumentRead, status_code=status.HTTP_201_CREATED)
async def upload_document(
    file: UploadFile = File(...),
    user_id: str = Form(..., alias="userId"),
    document_type: str = Form(..., alias="documentType"),
    original_name: str = Form(..., alias="originalName"),
    db: Session = Depends(get_db),
):
    content = await file.read()
    document = await run_in_threadpool(
        doc_service.upload,
        db,
        content,
        user_id,
        document_type,
        original_name,
        file.content_type,
    )
    await doc_service.notify_uploaded(db, document)
    return document


@router.get("/user/{user_id}", response_model=ListResponse[DocumentRead])
def list_user_documents(
    user_id: str,
    search: str | None = None,
    document_type: str | None = Query(default=None, alias="type"),
    status_filter: str | None = Query(default=None, alias="status"),
    uploaded_on: date | None = Query(default=None, alias="date"),
    limit: int | None = Query(default=None, ge=1, le=500),
    db: Session = Depends(get_db),
):
    return doc_service.list_response(
        db,
        user_id=user_id,
        search=search,
        document_type=document_type,
        status=status_filter,
        uploaded_on=uploaded_on,
        limit=limit,
    )


@router.get("/user/{user_id}/recent", response_model=ListResponse[DocumentRead])
def list_recent_documents(user_id: str, db: Session = Depends(get_db)):
    return doc_service.list_response(db, user_id=user_id, limit=5)


@router.get("/{document_id}", response_model=DocumentRead)
def get_document(document_id: str, db: Session = Depends(get_db)):
    document = doc_service.get(db, document_id)
    if not document:
        raise HTTPException(status_code=404, detail="Document not found")
    return document


@router.get("/{document_id}/url", response_model=DocumentURLResponse)
def get_document_url(document_id: str, db: Session = Depends(get_db)):
    return {"url": doc_service.public_url(db, document_id)}


@router.patch("/{document_id}/status", response_model=DocumentRead)
def update_document_status(
    document_id: str, payload: DocumentStatusUpdate, db: Session = Depends(get_db)
):
    return doc_service.update_status(db, document_id, payload.status)


@router.delete("/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(document_id: str, db: Session = Depends(get_db)):
    doc_service.delete(db, document_id)
