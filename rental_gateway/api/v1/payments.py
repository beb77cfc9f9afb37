"""GET /v1/payments/key - Processor key id for the client-side checkout widget"""

from fastapi import APIRouter, Depends

from rental_gateway.api.dependencies import get_gateway
from rental_gateway.api.v1.schemas import PublicKeyResponse
from rental_gateway.services.gateway import PaymentGateway

router = APIRouter()


@router.get("/payments/key", response_model=PublicKeyResponse)
def get_public_key(gateway: PaymentGateway = Depends(get_gateway)):
    return PublicKeyResponse(key_id=gateway.public_key())
