from fastapi import Depends, FastAPI, HTTPException
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from pydantic import BaseModel, Field
import os
import secrets
import time

app = FastAPI(title="Mock Payment Processor", version="1.0.0")
security = HTTPBasic()

# Must match PROCESSOR_KEY_ID / PROCESSOR_KEY_SECRET of the gateway under test
KEY_ID = os.environ.get("PROCESSOR_KEY_ID", "rzp_test_mock")
KEY_SECRET = os.environ.get("PROCESSOR_KEY_SECRET", "mock_secret")
MAX_AMOUNT_MINOR = 100000 * 100

orders = {}


class OrderRequest(BaseModel):
    amount: int = Field(..., gt=0)
    currency: str
    receipt: str = Field(..., max_length=40)
    payment_capture: int = 1


def authenticate(credentials: HTTPBasicCredentials = Depends(security)):
    valid_id = secrets.compare_digest(credentials.username, KEY_ID)
    valid_secret = secrets.compare_digest(credentials.password, KEY_SECRET)
    if not (valid_id and valid_secret):
        raise HTTPException(status_code=401, detail="Authentication failed")


@app.get("/health")
def health(): return {"status": "ok"}

@app.post("/v1/orders", dependencies=[Depends(authenticate)])
def create_order(order: OrderRequest):
    if order.amount > MAX_AMOUNT_MINOR:
        raise HTTPException(status_code=400, detail="amount exceeds maximum amount allowed")
    order_id = f"order_{secrets.token_hex(7)}"
    orders[order_id] = {
        "id": order_id,
        "entity": "order",
        "amount": order.amount,
        "currency": order.currency,
        "receipt": order.receipt,
        "status": "created",
        "created_at": int(time.time()),
    }
    return orders[order_id]

@app.get("/v1/orders/{order_id}", dependencies=[Depends(authenticate)])
def get_order(order_id: str):
    if order_id not in orders:
        raise HTTPException(status_code=404, detail="order not found")
    return orders[order_id]
