# tms_api/routers/reference.py
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ASCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import ReferenceItem
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404

router = APIRouter()


def _collection(name: str) -> str:
    if name not in store.REFERENCE_COLLECTIONS:
        raise HTTPException(status_code=404, detail=f"Unknown reference collection '{name}'.")
    return name


@router.get("/")
def list_reference_collections():
    return {"collections": list(store.REFERENCE_COLLECTIONS)}


@router.get("/{collection}")
def list_items(collection: str, makeId: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"makeId": makeId} if makeId else {}
    return store.list_documents(db, _collection(collection), filter_dict, sort=[("name", ASCENDING)])


@router.post("/{collection}", status_code=201)
def create_item(collection: str, item: ReferenceItem, db: Database = Depends(get_db)):
    name = _collection(collection)
    if name == "vehicle_models" and not item.makeId:
        raise HTTPException(status_code=400, detail="Vehicle models require a makeId.")
    item_id = store.create_document(db, name, item.model_dump(exclude_none=True))
    return store.get_document(db, name, item_id)


@router.get("/{collection}/{item_id}")
def get_item(collection: str, item_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, _collection(collection), item_id, "Reference item")


@router.put("/{collection}/{item_id}")
def update_item(collection: str, item_id: str, item: ReferenceItem, db: Database = Depends(get_db)):
    return update_or_404(db, _collection(collection), item_id, item.model_dump(exclude_none=True), "Reference item")


@router.delete("/{collection}/{item_id}")
def delete_item(collection: str, item_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, _collection(collection), item_id, "Reference item")
