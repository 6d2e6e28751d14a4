# tms_api/models.py
"""
Request/document schemas for the TMS collections.

Each model mirrors one document collection; denormalized display fields
(customerName, driverName, ...) are copied at write time rather than joined.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

# --- Customers ---

class CreatedBy(BaseModel):
    uid: str
    name: str

class Customer(BaseModel):
    name: str = Field(..., min_length=1)
    registerNumber: str
    industryId: Optional[str] = None
    address: str = ""
    officePhone: str = ""
    email: Optional[EmailStr] = None
    note: Optional[str] = None
    logoUrl: Optional[str] = None
    createdBy: Optional[CreatedBy] = None

class CustomerEmployee(BaseModel):
    lastName: str
    firstName: str
    phone: str
    email: Optional[EmailStr] = None
    position: str = ""
    note: Optional[str] = None

# --- Fleet ---

DriverStatus = Literal["Active", "Inactive", "On Leave"]

class EmergencyContact(BaseModel):
    name: str
    phone: str = Field(..., min_length=8)

class Driver(BaseModel):
    display_name: str = Field(..., min_length=2)
    phone_number: str = Field(..., min_length=8)
    status: DriverStatus = "Active"
    registerNumber: str
    birthDate: Optional[datetime] = None
    licenseNumber: str
    licenseClasses: List[str] = Field(..., min_length=1)
    licenseExpiryDate: Optional[datetime] = None
    emergencyContact: Optional[EmergencyContact] = None
    isAvailableForContracted: bool = False
    authUid: Optional[str] = None

VehicleStatus = Literal["Available", "Ready", "In Use", "Maintenance"]
FuelType = Literal["Diesel", "Gasoline", "Electric", "Hybrid"]

class VehicleSpecs(BaseModel):
    tankCapacity: Optional[float] = None
    transmission: Optional[Literal["Manual", "Automatic", "CVT", "DCT"]] = None
    axleConfig: Optional[str] = None
    engineType: Optional[str] = None

class VehicleDates(BaseModel):
    purchase: Optional[datetime] = None
    warrantyExpiry: Optional[datetime] = None
    registrationExpiry: Optional[datetime] = None
    insuranceExpiry: Optional[datetime] = None
    roadPermitExpiry: Optional[datetime] = None
    inspectionExpiry: Optional[datetime] = None

class Vehicle(BaseModel):
    makeId: str
    modelId: str
    year: int = Field(..., ge=1980)
    importedYear: Optional[int] = Field(None, ge=1980)
    licensePlate: str
    trailerLicensePlate: Optional[str] = None
    vin: str
    vehicleTypeId: str
    trailerTypeId: Optional[str] = None
    capacity: str
    fuelType: FuelType = "Diesel"
    odometer: float = Field(0, ge=0)
    status: VehicleStatus = "Available"
    specs: Optional[VehicleSpecs] = None
    dates: Optional[VehicleDates] = None
    notes: Optional[str] = None

class AssignVehicleRequest(BaseModel):
    vehicleId: str
    assignedBy: str
    startOdometer: Optional[float] = None
    notes: Optional[str] = None
    keepExisting: bool = False

class DriverLinkRequest(BaseModel):
    uid: str = Field(..., min_length=1)

class SetPrimaryRequest(BaseModel):
    vehicleId: str
    updatedBy: str
    force: bool = False

class UnassignVehicleRequest(BaseModel):
    vehicleId: str
    unassignedBy: str
    endOdometer: Optional[float] = None

class LicenseCheckRequest(BaseModel):
    vehicleId: str
    trailerAttached: bool = False

class GeoPoint(BaseModel):
    lat: float
    lng: float

class Warehouse(BaseModel):
    name: str
    location: str
    geolocation: Optional[GeoPoint] = None
    conditions: str = ""
    contactInfo: str = ""
    contactName: Optional[str] = None
    contactPosition: Optional[str] = None
    note: Optional[str] = None
    customerId: Optional[str] = None
    customerName: Optional[str] = None

# --- Orders, quotes and shipments ---

OrderItemStatus = Literal["Pending", "Assigned", "Shipped", "In Transit", "Delivered", "Cancelled"]

class OrderCreate(BaseModel):
    customerId: str = Field(..., min_length=1)
    employeeId: str = Field(..., min_length=1)
    transportManagerId: str = Field(..., min_length=1)

class EmployeeChange(BaseModel):
    employeeId: str

class CargoItem(BaseModel):
    name: str
    quantity: float = Field(..., gt=0)
    unit: str
    packagingTypeId: Optional[str] = None
    notes: Optional[str] = None

class OrderItemCreate(BaseModel):
    serviceTypeId: str
    startRegionId: str
    endRegionId: str
    startWarehouseId: str
    endWarehouseId: str
    totalDistance: Optional[float] = Field(None, ge=0)
    loadingStartDate: datetime
    loadingEndDate: datetime
    unloadingStartDate: datetime
    unloadingEndDate: datetime
    vehicleTypeId: str
    trailerTypeId: str
    profitMargin: float = 0
    withVAT: bool = False
    frequency: int = Field(1, ge=1)
    cargoItems: List[CargoItem] = []

class OrderItemsCreate(BaseModel):
    items: List[OrderItemCreate] = Field(..., min_length=1)

class DriverQuoteCreate(BaseModel):
    driverName: str
    driverPhone: str
    price: float = Field(..., ge=0)
    notes: Optional[str] = None

ShipmentStatus = Literal[
    "Preparing", "Ready For Loading", "Loading", "In Transit", "Unloading", "Delivered", "Cancelled"
]

class ShipmentStatusChange(BaseModel):
    status: ShipmentStatus

class ChecklistRequest(BaseModel):
    cargoInfo: str = Field(..., min_length=1)
    vehicleInfo: str = Field(..., min_length=1)

# --- Contracts & briefings ---

class ContractCreate(BaseModel):
    shipmentId: str
    terms: str = ""
    price: Optional[float] = None

class SafetyBriefingCreate(BaseModel):
    shipmentId: str
    items: List[str] = []

class SignRequest(BaseModel):
    signatureDataUrl: str = Field(..., pattern=r"^data:image/")
    userAgent: Optional[str] = None

# --- Contracted transport ---

ExecutionStatus = Literal["Pending", "Loaded", "Unloaded", "Delivered"]

class AssignedDriver(BaseModel):
    driverId: str
    driverName: str
    driverPhone: Optional[str] = None

class ContractedRoute(BaseModel):
    totalDistance: float = 0

class ContractedTransport(BaseModel):
    contractNumber: str
    customerId: str
    customerName: str
    startRegionId: str
    endRegionId: str
    startWarehouseId: str
    endWarehouseId: str
    route: ContractedRoute = ContractedRoute()
    cargoItems: List[str] = []
    status: Literal["Active", "Completed", "Cancelled"] = "Active"

class ContractedDriverAdd(BaseModel):
    driverId: str

class ExecutionCreate(BaseModel):
    date: Optional[datetime] = None
    driverId: Optional[str] = None
    driverName: Optional[str] = None
    vehicleLicense: Optional[str] = None
    selectedCargo: List[str] = []
    totalLoadedWeight: float = 0
    totalUnloadedWeight: float = 0

class ExecutionStatusChange(BaseModel):
    status: ExecutionStatus
    date: Optional[datetime] = None
    totalLoadedWeight: Optional[float] = None
    totalUnloadedWeight: Optional[float] = None

# --- Fuel & maintenance ---

class FuelLog(BaseModel):
    vehicleId: str = Field(..., min_length=1)
    date: datetime
    odometer: float = Field(..., ge=0)
    liters: float = Field(..., ge=0.1)
    pricePerLiter: float = Field(..., ge=0)
    totalCost: float = Field(..., ge=0)
    stationName: Optional[str] = None
    fullTank: bool = False
    notes: Optional[str] = None

MaintenanceType = Literal["Preventive", "Repair", "Inspection", "TireChange", "Other"]
MaintenanceStatus = Literal["Scheduled", "In Progress", "Completed", "Cancelled"]

class MaintenanceRecord(BaseModel):
    vehicleId: str = Field(..., min_length=1)
    type: MaintenanceType
    date: datetime
    odometer: float = Field(..., ge=0)
    cost: float = Field(..., ge=0)
    garageName: Optional[str] = None
    description: str = Field(..., min_length=1)
    status: MaintenanceStatus = "Scheduled"

# --- System users ---

UserRole = Literal["admin", "transport_manager", "finance_manager", "customer_officer", "manager", "driver"]
UserStatus = Literal["pending", "active", "inactive"]

class SystemUser(BaseModel):
    uid: str
    firstName: str
    lastName: str
    phone: str
    email: EmailStr
    role: UserRole = "manager"
    status: UserStatus = "pending"
    avatarUrl: Optional[str] = None

class UserUpdate(BaseModel):
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    changedBy: CreatedBy

class ReferenceItem(BaseModel):
    name: str = Field(..., min_length=1)
    makeId: Optional[str] = None

# --- AI helpers ---

class OptimizeRouteRequest(BaseModel):
    currentRoute: str = Field(..., min_length=1)
    deliveryDeadlines: str
    trafficConditions: str

class DocumentImages(BaseModel):
    frontImageBase64: Optional[str] = None
    backImageBase64: Optional[str] = None

class HtmlPdfRequest(BaseModel):
    htmlContent: Optional[str] = None
    cssContent: Optional[str] = None

# --- Quote documents ---

class QuoteExportRequest(BaseModel):
    orderId: str
    itemIds: List[str] = []
