# gymhub/api/routers/cart.py
from decimal import Decimal

from fastapi import APIRouter, Depends, Query

from gymhub.api.deps import get_cart_repo, get_session
from gymhub.domain.schemas import CartItemIn, CartOut, CheckoutSummary, QuantityIn
from gymhub.repos.cart_repo import CartRepo, save_quietly
from gymhub.services.session_service import SessionService
from gymhub.utils.settings import CART_SESSION_ID

router = APIRouter(prefix="/cart", tags=["cart"])


def _saved(svc: SessionService, repo: CartRepo) -> CartOut:
    save_quietly(repo, CART_SESSION_ID, svc.cart.to_snapshot())
    return svc.cart.to_out()


@router.get("", response_model=CartOut)
def get_cart(svc: SessionService = Depends(get_session)):
    return svc.cart.to_out()


@router.post("/items", response_model=CartOut)
def add_item(
    payload: CartItemIn,
    svc: SessionService = Depends(get_session),
    repo: CartRepo = Depends(get_cart_repo),
):
    #over stock / out of stock: 200 with the cart unchanged
    svc.cart.add_to_cart(payload)
    return _saved(svc, repo)


@router.patch("/items/{product_id}", response_model=CartOut)
def update_item(
    product_id: str,
    payload: QuantityIn,
    svc: SessionService = Depends(get_session),
    repo: CartRepo = Depends(get_cart_repo),
):
    svc.cart.update_quantity(product_id, payload.quantity)
    return _saved(svc, repo)


@router.delete("/items/{product_id}", response_model=CartOut)
def remove_item(
    product_id: str,
    svc: SessionService = Depends(get_session),
    repo: CartRepo = Depends(get_cart_repo),
):
    svc.cart.remove_from_cart(product_id)
    return _saved(svc, repo)


@router.delete("", response_model=CartOut)
def clear_cart(
    svc: SessionService = Depends(get_session),
    repo: CartRepo = Depends(get_cart_repo),
):
    svc.cart.clear_cart()
    return _saved(svc, repo)


@router.get("/checkout", response_model=CheckoutSummary)
def checkout_summary(
    membership_discount: Decimal = Query(Decimal("0"), ge=0, le=100, alias="membershipDiscount"),
    svc: SessionService = Depends(get_session),
):
    return svc.cart.checkout_summary(membership_discount)
