# tms_api/routers/deps.py
import logging
from typing import Any, Dict

from fastapi import HTTPException, status
from pymongo.database import Database

from tms_api.data import store
from tms_api.services.openai_client import AINotConfiguredError, AIServiceError
from tms_api.services.sheets_client import SheetsError, SheetsNotConfiguredError

logger = logging.getLogger(__name__)


def get_or_404(db: Database, collection_name: str, doc_id: str, label: str) -> Dict[str, Any]:
    doc = store.get_document(db, collection_name, doc_id)
    if doc is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} '{doc_id}' not found.")
    return doc


def update_or_404(db: Database, collection_name: str, doc_id: str, changes: Any, label: str) -> Dict[str, Any]:
    if not store.update_document(db, collection_name, doc_id, changes):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} '{doc_id}' not found.")
    return store.get_document(db, collection_name, doc_id)


def delete_or_404(db: Database, collection_name: str, doc_id: str, label: str) -> Dict[str, str]:
    if not store.delete_document(db, collection_name, doc_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{label} '{doc_id}' not found.")
    logger.info(f"Deleted {collection_name}/{doc_id}")
    return {"message": f"{label} '{doc_id}' successfully deleted."}


def ai_http_error(e: AIServiceError) -> HTTPException:
    if isinstance(e, AINotConfiguredError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e))


def sheets_http_error(e: SheetsError) -> HTTPException:
    if isinstance(e, SheetsNotConfiguredError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(e))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                         detail=f"Failed to send data to Google Sheets: {e}")
