# gymhub/api/deps.py
from fastapi import Request

from gymhub.repos.cart_repo import CartRepo
from gymhub.services.session_service import SessionService


def get_session(request: Request) -> SessionService:
    return request.app.state.session


def get_cart_repo(request: Request) -> CartRepo:
    return request.app.state.cart_repo
