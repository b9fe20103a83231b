# gymhub/api/routers/session.py
from fastapi import APIRouter, Depends, HTTPException

from gymhub.api.deps import get_session
from gymhub.domain.schemas import LoginIn, SessionStatusOut
from gymhub.services.notification_store import connection_status_text
from gymhub.services.session_service import AuthenticationRequiredError, SessionService

router = APIRouter(prefix="/session", tags=["session"])


@router.post("/login")
async def login(payload: LoginIn, svc: SessionService = Depends(get_session)):
    """
    Starts the notification hub connection for the user.
    A hub outage is not an error here, it shows up as connected=false.
    """
    try:
        connected = await svc.login(payload.user_id, payload.token)
    except AuthenticationRequiredError as e:
        raise HTTPException(status_code=401, detail=str(e))
    return {"connected": connected}


@router.post("/logout")
async def logout(svc: SessionService = Depends(get_session)):
    await svc.logout()
    return {"connected": False}


@router.get("/status", response_model=SessionStatusOut)
def status(svc: SessionService = Depends(get_session)):
    connected = svc.is_connected
    return SessionStatusOut(
        state=svc.manager.get_connection_state().value,
        connected=connected,
        status_text=connection_status_text(connected, len(svc.notifications) > 0),
    )
