from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.database import Database
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

import database
from auth import router as auth_router
from auth import seed_admin_user
from bills import Bill, MongoBillHistory
from cart import Cart
from config import settings
from database import get_db
from errors import PharmacyError
from inventory import MedicineRecord, MongoInventory, parse_object_id
from logging_config import get_logger, setup_logging
from notifications import MEDICINES, ChangeBus, change_bus
from schemas import (BillItemOut, BillOut, CartItemRequest, CartLineOut, CartOut,
                     CartQuantityRequest, CheckoutOut, CheckoutRequest,
                     ClassifiedMedicineOut, DashboardOut, DiscountRequest,
                     Medicine, MedicineOut, MedicineUpdate, SalesSummaryOut,
                     SoftFailureOut, StockProcessRequest, StockProcessResult,
                     StockSummaryOut, TotalsOut)
from settlement import settle
from stock import (EXPIRED, EXPIRING_SOON, LOW_STOCK, OUT_OF_STOCK, ClassifiedMedicine,
                   stock_levels, summarize, summarize_sales)

setup_logging(settings.LOG_LEVEL, settings.SERVICE_NAME)
logger = get_logger(__name__)

CART_COLLECTION = "cart"


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("starting", service=settings.SERVICE_NAME, database_configured=database.db is not None)
    if database.db is not None:
        try:
            seed_admin_user(database.db)
        except PyMongoError as e:
            logger.error("admin_seed_failed", error=str(e))
    yield
    database.close_client()
    logger.info("stopped", service=settings.SERVICE_NAME)


app = FastAPI(title="PharmaCare Pharmacy API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth_router)


@app.exception_handler(PharmacyError)
async def pharmacy_error_handler(request: Request, exc: PharmacyError):
    logger.info("request_rejected", path=request.url.path, error=type(exc).__name__, message=exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.message, "detail": exc.message},
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail, "detail": exc.detail},
        headers=getattr(exc, "headers", None),
    )


# ==== Dependencies ====

def get_inventory(db: Database = Depends(get_db)) -> MongoInventory:
    return MongoInventory(db)


def get_history(db: Database = Depends(get_db)) -> MongoBillHistory:
    return MongoBillHistory(db, limit=settings.BILL_HISTORY_LIMIT)


def get_change_bus() -> ChangeBus:
    return change_bus


# ==== Converters ====

def _medicine_out(record: MedicineRecord) -> MedicineOut:
    return MedicineOut(
        id=record.id,
        name=record.name,
        company=record.company,
        price=record.price,
        quantity=record.quantity,
        expiry_date=record.expiry_date,
        created_at=record.created_at,
    )


def _classified_out(item: ClassifiedMedicine) -> ClassifiedMedicineOut:
    return ClassifiedMedicineOut(
        medicine=_medicine_out(item.record), status=item.status, days_to_expiry=item.days_to_expiry
    )


def _bill_out(bill: Bill) -> BillOut:
    return BillOut(
        bill_number=bill.bill_number,
        customer_name=bill.customer_name,
        customer_phone=bill.customer_phone,
        items=[
            BillItemOut(
                medicine_id=i.medicine_id,
                name=i.name,
                unit_price=i.unit_price,
                quantity=i.quantity,
                line_total=i.line_total,
            )
            for i in bill.items
        ],
        subtotal=bill.subtotal,
        tax=bill.tax,
        discount=bill.discount,
        total=bill.total,
        created_at=bill.created_at,
    )


def _cart_out(cart_id: str, cart: Cart) -> CartOut:
    totals = cart.totals()
    return CartOut(
        id=cart_id,
        items=[
            CartLineOut(
                medicine_id=line.medicine_id,
                name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                max_stock=line.max_stock,
                line_total=line.line_total,
            )
            for line in cart.lines
        ],
        totals=TotalsOut(
            subtotal=totals.subtotal, tax=totals.tax, discount=totals.discount, total=totals.total
        ),
    )


# ==== Cart recovery store ====

def _cart_saver(db: Database, cart_id: str):
    oid = parse_object_id(cart_id)

    def save(cart: Cart) -> None:
        try:
            db[CART_COLLECTION].update_one(
                {"_id": oid},
                {"$set": {**cart.to_document(), "updated_at": datetime.now(timezone.utc)}},
            )
        except PyMongoError as e:
            logger.warning("cart_save_failed", cart_id=cart_id, error=str(e))

    return save


def _load_cart(cart_id: str, db: Database) -> Cart:
    oid = parse_object_id(cart_id)
    doc = db[CART_COLLECTION].find_one({"_id": oid}) if oid else None
    if not doc:
        raise HTTPException(status_code=404, detail="Cart not found")
    return Cart.from_document(doc, on_change=_cart_saver(db, cart_id), tax_rate=settings.TAX_RATE)


# ==== Routes ====

@app.get("/")
def read_root():
    return {"message": "PharmaCare Pharmacy API is running"}


@app.get("/api/health")
def health():
    response = {
        "success": True,
        "status": "healthy",
        "database": "not configured",
        "collections": [],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if database.db is not None:
        try:
            response["collections"] = database.db.list_collection_names()[:10]
            response["database"] = "connected"
        except PyMongoError as e:
            response["database"] = f"error: {str(e)[:50]}"
    return response


@app.get("/api/changes")
def list_changes(bus: ChangeBus = Depends(get_change_bus)):
    return {"versions": bus.versions()}


# Medicine Endpoints
@app.post("/api/medicines", response_model=MedicineOut, status_code=201)
def create_medicine(medicine: Medicine, inventory: MongoInventory = Depends(get_inventory), bus: ChangeBus = Depends(get_change_bus)):
    record = inventory.create(medicine.model_dump())
    bus.publish(MEDICINES)
    return _medicine_out(record)


@app.get("/api/medicines", response_model=List[MedicineOut])
def list_medicines(q: Optional[str] = None, inventory: MongoInventory = Depends(get_inventory)):
    return [_medicine_out(r) for r in inventory.list_medicines(q)]


@app.get("/api/medicines/{medicine_id}", response_model=MedicineOut)
def get_medicine(medicine_id: str, inventory: MongoInventory = Depends(get_inventory)):
    record = inventory.get(medicine_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Medicine not found")
    return _medicine_out(record)


@app.put("/api/medicines/{medicine_id}", response_model=MedicineOut)
def update_medicine(medicine_id: str, payload: MedicineUpdate, inventory: MongoInventory = Depends(get_inventory), bus: ChangeBus = Depends(get_change_bus)):
    record = inventory.update(medicine_id, payload.model_dump(exclude_unset=True))
    if record is None:
        raise HTTPException(status_code=404, detail="Medicine not found")
    bus.publish(MEDICINES)
    return _medicine_out(record)


@app.delete("/api/medicines/{medicine_id}")
def delete_medicine(medicine_id: str, inventory: MongoInventory = Depends(get_inventory), bus: ChangeBus = Depends(get_change_bus)):
    if not inventory.delete(medicine_id):
        raise HTTPException(status_code=404, detail="Medicine not found")
    bus.publish(MEDICINES)
    return {"success": True, "message": "Medicine deleted successfully"}


@app.post("/api/medicines/bill/process", response_model=List[StockProcessResult])
def process_stock(payload: StockProcessRequest, inventory: MongoInventory = Depends(get_inventory), bus: ChangeBus = Depends(get_change_bus)):
    results = [
        StockProcessResult(id=line.id, quantity=line.quantity, updated=inventory.decrement_stock(line.id, line.quantity))
        for line in payload.items
    ]
    if any(r.updated for r in results):
        bus.publish(MEDICINES)
    return results


# Cart Endpoints
@app.post("/api/carts", response_model=CartOut, status_code=201)
def create_cart(db: Database = Depends(get_db)):
    now = datetime.now(timezone.utc)
    result = db[CART_COLLECTION].insert_one(
        {**Cart().to_document(), "created_at": now, "updated_at": now}
    )
    cart_id = str(result.inserted_id)
    return _cart_out(cart_id, _load_cart(cart_id, db))


@app.get("/api/carts/{cart_id}", response_model=CartOut)
def get_cart(cart_id: str, db: Database = Depends(get_db)):
    return _cart_out(cart_id, _load_cart(cart_id, db))


@app.post("/api/carts/{cart_id}/items", response_model=CartOut)
def add_cart_item(cart_id: str, payload: CartItemRequest, db: Database = Depends(get_db), inventory: MongoInventory = Depends(get_inventory)):
    cart = _load_cart(cart_id, db)
    record = inventory.get(payload.medicine_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Medicine not found")
    cart.add_item(record.id, record.name, record.price, payload.quantity, record.quantity)
    return _cart_out(cart_id, cart)


@app.patch("/api/carts/{cart_id}/items/{medicine_id}", response_model=CartOut)
def update_cart_item(cart_id: str, medicine_id: str, payload: CartQuantityRequest, db: Database = Depends(get_db)):
    cart = _load_cart(cart_id, db)
    cart.update_quantity(medicine_id, payload.quantity)
    return _cart_out(cart_id, cart)


@app.delete("/api/carts/{cart_id}/items/{medicine_id}", response_model=CartOut)
def remove_cart_item(cart_id: str, medicine_id: str, db: Database = Depends(get_db)):
    cart = _load_cart(cart_id, db)
    cart.remove_item(medicine_id)
    return _cart_out(cart_id, cart)


@app.put("/api/carts/{cart_id}/discount", response_model=CartOut)
def set_cart_discount(cart_id: str, payload: DiscountRequest, db: Database = Depends(get_db)):
    cart = _load_cart(cart_id, db)
    cart.set_discount(payload.discount)
    return _cart_out(cart_id, cart)


@app.delete("/api/carts/{cart_id}", response_model=CartOut)
def clear_cart(cart_id: str, db: Database = Depends(get_db)):
    cart = _load_cart(cart_id, db)
    cart.clear()
    return _cart_out(cart_id, cart)


@app.post("/api/carts/{cart_id}/checkout", response_model=CheckoutOut)
def checkout(
    cart_id: str,
    payload: CheckoutRequest,
    db: Database = Depends(get_db),
    inventory: MongoInventory = Depends(get_inventory),
    history: MongoBillHistory = Depends(get_history),
    bus: ChangeBus = Depends(get_change_bus),
):
    cart = _load_cart(cart_id, db)
    result = settle(
        cart,
        inventory,
        history,
        bus,
        discount=payload.discount,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
    )
    return CheckoutOut(
        bill=_bill_out(result.bill),
        stock_synced=result.stock_synced,
        failures=[
            SoftFailureOut(operation=f.operation, detail=f.detail, medicine_id=f.medicine_id, quantity=f.quantity)
            for f in result.failures
        ],
    )


# Bill Endpoints
@app.get("/api/bills", response_model=List[BillOut])
def list_bills(limit: int = Query(20, ge=1), history: MongoBillHistory = Depends(get_history)):
    return [_bill_out(b) for b in history.list_recent_bills(limit)]


@app.get("/api/bills/{bill_number}", response_model=BillOut)
def get_bill(bill_number: str, history: MongoBillHistory = Depends(get_history)):
    bill = history.get_bill(bill_number)
    if bill is None:
        raise HTTPException(status_code=404, detail="Bill not found")
    return _bill_out(bill)


@app.get("/api/dashboard", response_model=DashboardOut)
def dashboard(inventory: MongoInventory = Depends(get_inventory), history: MongoBillHistory = Depends(get_history)):
    records = inventory.list_medicines()
    bills = history.list_recent_bills(settings.BILL_HISTORY_LIMIT)
    today = datetime.now(timezone.utc).date()

    summary = summarize(
        records,
        today,
        expiry_warning_days=settings.EXPIRY_WARNING_DAYS,
        low_stock_threshold=settings.LOW_STOCK_THRESHOLD,
    )
    sales = summarize_sales(bills, today)
    return DashboardOut(
        stock=StockSummaryOut(
            counts=summary.counts,
            total_medicines=summary.total_medicines,
            total_units=summary.total_units,
            total_value=summary.total_value,
            recent=[_classified_out(c) for c in summary.recent],
            alerts={
                status: [_classified_out(c) for c in summary.by_status[status]]
                for status in (EXPIRED, EXPIRING_SOON, LOW_STOCK, OUT_OF_STOCK)
            },
        ),
        stock_levels=stock_levels(records),
        sales=SalesSummaryOut(
            today_bills=sales.today_bills,
            today_amount=sales.today_amount,
            total_bills=sales.total_bills,
            total_amount=sales.total_amount,
        ),
        recent_bills=[_bill_out(b) for b in bills[:5]],
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
