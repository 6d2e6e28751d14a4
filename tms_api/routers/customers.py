# tms_api/routers/customers.py
import logging
import re
from io import BytesIO
from typing import Optional

import pandas as pd
from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from pydantic import ValidationError
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import Customer, CustomerEmployee
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404

logger = logging.getLogger(__name__)
router = APIRouter()

IMPORT_COLUMNS = ["name", "registerNumber", "industryId", "address", "officePhone", "email", "note"]
REQUIRED_IMPORT_COLUMNS = ["name", "registerNumber"]


@router.get("/", summary="List customers, newest first")
def list_customers(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=200),
    search: Optional[str] = None,
    db: Database = Depends(get_db),
):
    filter_dict = {}
    if search:
        filter_dict["name"] = {"$regex": f"^{re.escape(search)}", "$options": "i"}
    total = db[store.CUSTOMERS].count_documents(filter_dict)
    customers = store.list_documents(db, store.CUSTOMERS, filter_dict, sort=[("createdAt", DESCENDING)],
                                     limit=limit, skip=(page - 1) * limit)
    return {"items": customers, "total": total, "page": page, "limit": limit}


@router.post("/", status_code=201, summary="Create a customer")
def create_customer(customer: Customer, db: Database = Depends(get_db)):
    customer_id = store.create_document(db, store.CUSTOMERS, customer)
    logger.info(f"Customer '{customer.name}' created with id {customer_id}")
    return store.get_document(db, store.CUSTOMERS, customer_id)


@router.get("/{customer_id}")
def get_customer(customer_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.CUSTOMERS, customer_id, "Customer")


@router.put("/{customer_id}")
def update_customer(customer_id: str, customer: Customer, db: Database = Depends(get_db)):
    return update_or_404(db, store.CUSTOMERS, customer_id, customer, "Customer")


@router.delete("/{customer_id}")
def delete_customer(customer_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, store.CUSTOMERS, customer_id, "Customer")


# --- Employees ---

@router.get("/{customer_id}/employees")
def list_employees(customer_id: str, db: Database = Depends(get_db)):
    get_or_404(db, store.CUSTOMERS, customer_id, "Customer")
    return store.list_documents(db, store.CUSTOMER_EMPLOYEES, {"customerId": customer_id},
                                sort=[("createdAt", DESCENDING)])


@router.post("/{customer_id}/employees", status_code=201)
def create_employee(customer_id: str, employee: CustomerEmployee, db: Database = Depends(get_db)):
    get_or_404(db, store.CUSTOMERS, customer_id, "Customer")
    data = employee.model_dump()
    data["customerId"] = customer_id
    employee_id = store.create_document(db, store.CUSTOMER_EMPLOYEES, data)
    return store.get_document(db, store.CUSTOMER_EMPLOYEES, employee_id)


@router.put("/{customer_id}/employees/{employee_id}")
def update_employee(customer_id: str, employee_id: str, employee: CustomerEmployee, db: Database = Depends(get_db)):
    existing = get_or_404(db, store.CUSTOMER_EMPLOYEES, employee_id, "Employee")
    if existing.get("customerId") != customer_id:
        raise HTTPException(status_code=404, detail=f"Employee '{employee_id}' not found.")
    return update_or_404(db, store.CUSTOMER_EMPLOYEES, employee_id, employee, "Employee")


@router.delete("/{customer_id}/employees/{employee_id}")
def delete_employee(customer_id: str, employee_id: str, db: Database = Depends(get_db)):
    existing = get_or_404(db, store.CUSTOMER_EMPLOYEES, employee_id, "Employee")
    if existing.get("customerId") != customer_id:
        raise HTTPException(status_code=404, detail=f"Employee '{employee_id}' not found.")
    return delete_or_404(db, store.CUSTOMER_EMPLOYEES, employee_id, "Employee")


@router.get("/{customer_id}/orders")
def list_customer_orders(customer_id: str, db: Database = Depends(get_db)):
    get_or_404(db, store.CUSTOMERS, customer_id, "Customer")
    return store.list_documents(db, store.ORDERS, {"customerId": customer_id}, sort=[("createdAt", DESCENDING)])


# --- Bulk import ---

@router.post("/import-excel", summary="Import customers from an Excel file")
async def import_customers_excel(file: UploadFile = File(...), db: Database = Depends(get_db)):
    if not file.filename or not file.filename.endswith(('.xlsx', '.xls')):
        raise HTTPException(status_code=400, detail="Invalid file type. Please upload an Excel file (.xlsx or .xls).")

    try:
        contents = await file.read()
        excel_data = pd.read_excel(BytesIO(contents), dtype=str)
    except Exception as e:
        logger.error(f"Error reading Excel file: {e}")
        raise HTTPException(status_code=400, detail=f"Error processing Excel file: {e}")

    missing_columns = [col for col in REQUIRED_IMPORT_COLUMNS if col not in excel_data.columns]
    if missing_columns:
        raise HTTPException(status_code=400,
                            detail=f"Missing required column(s) in Excel file: {', '.join(missing_columns)}")

    created_ids = []
    processing_errors = []

    for index, row in excel_data.iterrows():
        # Row 1 is the header in the spreadsheet
        row_number = index + 2
        data = {
            col: str(row[col]).strip()
            for col in IMPORT_COLUMNS
            if col in excel_data.columns and not pd.isna(row[col]) and str(row[col]).strip() != ''
        }
        missing_fields = [field for field in REQUIRED_IMPORT_COLUMNS if field not in data]
        if missing_fields:
            processing_errors.append({"row": row_number, "error": f"Missing data for fields: {', '.join(missing_fields)}"})
            continue

        try:
            customer = Customer(**data)
        except ValidationError as e:
            processing_errors.append({"row": row_number, "error": "; ".join(err["msg"] for err in e.errors())})
            continue

        if db[store.CUSTOMERS].count_documents({"registerNumber": customer.registerNumber}, limit=1):
            processing_errors.append({"row": row_number, "field": "registerNumber",
                                      "error": f"Customer with register number '{customer.registerNumber}' already exists."})
            continue

        created_ids.append(store.create_document(db, store.CUSTOMERS, customer))

    logger.info(f"Customer import finished: {len(created_ids)} created, {len(processing_errors)} errors")
    return {
        "status": not processing_errors,
        "message": f"{len(created_ids)} customer(s) imported.",
        "createdIds": created_ids,
        "errors": processing_errors,
    }
