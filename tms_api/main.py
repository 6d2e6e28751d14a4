# tms_api/main.py
import logging
import os
from contextlib import asynccontextmanager

import uvicorn  # For programmatic run
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from tms_api.config import settings
from tms_api.data.database import close_client
from tms_api.routers import (ai, contracted_transports, contracts, customers, drivers, fuel, maintenances, orders, pdf,
                             quotes, reference, reports, shipments, users, vehicles, warehouses)

# Configure logging
logging.basicConfig(level=settings.LOG_LEVEL.upper(),
                    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    os.makedirs(settings.UPLOAD_DIR, exist_ok=True)
    yield
    close_client()


app = FastAPI(
    title="TMS API",
    description="Transportation management: customers, fleet, orders, shipments and contracts.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.FRONTEND_ORIGIN] if settings.FRONTEND_ORIGIN else ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(customers.router, prefix="/api/v1/customers", tags=["Customers"])
app.include_router(drivers.router, prefix="/api/v1/drivers", tags=["Drivers"])
app.include_router(vehicles.router, prefix="/api/v1/vehicles", tags=["Vehicles"])
app.include_router(warehouses.router, prefix="/api/v1/warehouses", tags=["Warehouses"])
app.include_router(orders.router, prefix="/api/v1/orders", tags=["Orders"])
app.include_router(quotes.router, prefix="/api/v1/quotes", tags=["Quotes"])
app.include_router(shipments.router, prefix="/api/v1/shipments", tags=["Shipments"])
app.include_router(contracts.router, prefix="/api/v1/contracts", tags=["Contracts"])
app.include_router(contracted_transports.router, prefix="/api/v1/contracted-transports", tags=["Contracted Transport"])
app.include_router(fuel.router, prefix="/api/v1/fuel", tags=["Fuel"])
app.include_router(maintenances.router, prefix="/api/v1/maintenances", tags=["Maintenance"])
app.include_router(users.router, prefix="/api/v1/users", tags=["Users"])
app.include_router(reference.router, prefix="/api/v1/reference", tags=["Reference Data"])
app.include_router(ai.router, prefix="/api/v1/ai", tags=["AI"])
app.include_router(pdf.router, prefix="/api/v1/pdf", tags=["PDF"])
app.include_router(reports.router, prefix="/api/v1/reports", tags=["Reports"])

# Local uploads (when no storage bucket is configured) are served straight from disk
app.mount("/uploads", StaticFiles(directory=settings.UPLOAD_DIR, check_dir=False), name="uploads")


@app.get("/", tags=["Root"])
async def read_root():
    logger.info("Root endpoint was accessed.")
    return {"message": "Welcome to the TMS API!"}


if __name__ == "__main__":
    logger.info("Starting Uvicorn server on http://localhost:8000")
    uvicorn.run(app, host="0.0.0.0", port=8000)
