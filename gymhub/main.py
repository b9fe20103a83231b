# gymhub/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from pydantic import ValidationError
from redis.exceptions import RedisError
import uvicorn

from gymhub.api.routers import cart, notifications, session
from gymhub.repos.cart_repo import CartRepo
from gymhub.services.cart_store import CartStore
from gymhub.services.connection_manager import ConnectionManager
from gymhub.services.credentials import SessionCredentials
from gymhub.services.session_service import SessionService
from gymhub.utils.settings import CART_SESSION_ID
from gymhub.utils.logging import get_logger

logger = get_logger(__name__)


def build_session() -> SessionService:
    credentials = SessionCredentials()
    return SessionService(
        manager=ConnectionManager(credentials),
        credentials=credentials,
    )


def restore_cart(repo: CartRepo) -> CartStore:
    try:
        return CartStore.from_snapshot(repo.load(CART_SESSION_ID))
    except (RedisError, ValueError, ValidationError) as e:
        logger.warning(f"Cart snapshot not restored, starting empty: {e}")
        return CartStore()


def create_app(session_service: SessionService | None = None, cart_repo: CartRepo | None = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.cart_repo = cart_repo or CartRepo()
        app.state.session = session_service or build_session()
        app.state.session.cart = restore_cart(app.state.cart_repo)
        logger.info(f"Restored cart with {app.state.session.cart.total_items} items")
        yield
        #teardown on shutdown, same path as logout
        await app.state.session.logout()

    app = FastAPI(
        title="Gym Hub Client",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(session.router)
    app.include_router(notifications.router)
    app.include_router(cart.router)

    return app


app = create_app()

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=8000)
