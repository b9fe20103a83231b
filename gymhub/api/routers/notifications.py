# gymhub/api/routers/notifications.py
from fastapi import APIRouter, Depends, HTTPException

from gymhub.api.deps import get_session
from gymhub.domain.schemas import NotificationsOut
from gymhub.services.notification_store import badge_label
from gymhub.services.session_service import SessionService

router = APIRouter(prefix="/notifications", tags=["notifications"])


def _out(svc: SessionService) -> NotificationsOut:
    store = svc.notifications
    return NotificationsOut(
        notifications=list(store.notifications),
        unread_count=store.unread_count,
        badge=badge_label(store.unread_count),
    )


def _require(svc: SessionService, notification_id: str) -> None:
    if not any(n.id == notification_id for n in svc.notifications.notifications):
        raise HTTPException(status_code=404, detail="Notification not found")


@router.get("", response_model=NotificationsOut)
def get_notifications(svc: SessionService = Depends(get_session)):
    return _out(svc)


@router.post("/read-all", response_model=NotificationsOut)
def mark_all_read(svc: SessionService = Depends(get_session)):
    svc.notifications.mark_all_as_read()
    return _out(svc)


@router.post("/{notification_id}/read", response_model=NotificationsOut)
def mark_read(notification_id: str, svc: SessionService = Depends(get_session)):
    """Unknown id -> 404 here, while the store itself treats it as a no-op."""
    _require(svc, notification_id)
    svc.notifications.mark_as_read(notification_id)
    return _out(svc)


@router.delete("/{notification_id}", response_model=NotificationsOut)
def clear_notification(notification_id: str, svc: SessionService = Depends(get_session)):
    """Unknown id -> 404 here, while the store itself treats it as a no-op."""
    _require(svc, notification_id)
    svc.notifications.clear_notification(notification_id)
    return _out(svc)


@router.delete("", response_model=NotificationsOut)
def clear_all(svc: SessionService = Depends(get_session)):
    svc.notifications.clear_all_notifications()
    return _out(svc)
