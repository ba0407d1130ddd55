"""Konnect requests and konnections between users."""

import logging

from .errors import InvalidArgumentError, NotFoundError, UnauthenticatedError
from .store import RecordStore

logger = logging.getLogger(__name__)

STATUS_NOT_KONNECTED = "not_konnected"
STATUS_REQUEST_SENT = "request_sent"
STATUS_REQUEST_RECEIVED = "request_received"
STATUS_KONNECTED = "konnected"


def _require_user(user_id: str | None) -> str:
    if not user_id:
        raise UnauthenticatedError()
    return user_id


async def get_konnection_status(store: RecordStore, user_id: str, other_id: str) -> str:
    """Status of user_id relative to other_id, checked in that order of precedence."""
    if not user_id or not other_id or user_id == other_id:
        return STATUS_NOT_KONNECTED
    if await store.get_konnection(user_id, other_id) is not None:
        return STATUS_KONNECTED
    if await store.get_konnect_request(other_id, user_id) is not None:
        return STATUS_REQUEST_SENT
    if await store.get_konnect_request(user_id, other_id) is not None:
        return STATUS_REQUEST_RECEIVED
    return STATUS_NOT_KONNECTED


async def send_konnect_request(store: RecordStore, sender_id: str | None, recipient_id: str) -> dict:
    """Send a konnect request, or accept the recipient's pending request to us.

    Returns:
        {"success": bool, "message": str, "status": str}
    """
    sender_id = _require_user(sender_id)
    if sender_id == recipient_id:
        raise InvalidArgumentError("You cannot send a Konnect request to yourself.")

    sender = await store.get_profile(sender_id)
    if sender is None:
        raise NotFoundError("Your profile was not found.", record_id=sender_id)
    if not sender.is_public:
        return {
            "success": False,
            "message": "You are in Private Mode. Switch to Public Mode in your profile to "
            "send Konnect requests.",
            "status": STATUS_NOT_KONNECTED,
        }

    recipient = await store.get_profile(recipient_id)
    if recipient is None or not recipient.is_public:
        name = recipient.name if recipient and recipient.name else "This user"
        return {
            "success": False,
            "message": f"{name} is in Private Mode and cannot receive Konnect requests.",
            "status": STATUS_NOT_KONNECTED,
        }

    status = await get_konnection_status(store, sender_id, recipient_id)
    if status == STATUS_KONNECTED:
        return {"success": False, "message": "You are already konnected.", "status": status}
    if status == STATUS_REQUEST_SENT:
        return {"success": False, "message": "Konnect request already sent.", "status": status}
    if status == STATUS_REQUEST_RECEIVED:
        await accept_konnect_request(store, sender_id, recipient_id)
        return {
            "success": True,
            "message": "Konnect request accepted! You are now konnected.",
            "status": STATUS_KONNECTED,
        }

    batch = store.batch().set_request(
        recipient_id,
        sender_id,
        {"sender_id": sender_id, "sender_name": sender.display_name(), "status": "pending"},
    )
    await store.commit(batch)
    logger.info("Konnect request sent from %s to %s", sender_id, recipient_id)
    return {"success": True, "message": "Konnect request sent!", "status": STATUS_REQUEST_SENT}


async def accept_konnect_request(store: RecordStore, user_id: str | None, sender_id: str) -> None:
    """Konnect both users and drop the request, in one batch."""
    user_id = _require_user(user_id)
    if await store.get_konnect_request(user_id, sender_id) is None:
        raise NotFoundError(f"No Konnect request from {sender_id}.", record_id=sender_id)

    user = await store.get_profile(user_id)
    sender = await store.get_profile(sender_id)
    if user is None or sender is None:
        missing = user_id if user is None else sender_id
        raise NotFoundError(f"Profile {missing} not found.", record_id=missing)

    batch = store.batch()
    batch.set_konnection(
        user_id, sender_id, {"konnected_user_id": sender_id, "name": sender.display_name()}
    )
    batch.set_konnection(
        sender_id, user_id, {"konnected_user_id": user_id, "name": user.display_name()}
    )
    batch.delete_request(user_id, sender_id)
    await store.commit(batch)
    logger.info("Konnection created between %s and %s", user_id, sender_id)


async def decline_konnect_request(store: RecordStore, user_id: str | None, sender_id: str) -> None:
    user_id = _require_user(user_id)
    await store.commit(store.batch().delete_request(user_id, sender_id))
    logger.info("%s declined the Konnect request from %s", user_id, sender_id)


async def cancel_konnect_request(store: RecordStore, user_id: str | None, recipient_id: str) -> bool:
    """Withdraw a request user_id sent. Returns False if there was none."""
    user_id = _require_user(user_id)
    if await store.get_konnect_request(recipient_id, user_id) is None:
        logger.warning("No Konnect request from %s to %s to cancel", user_id, recipient_id)
        return False
    await store.commit(store.batch().delete_request(recipient_id, user_id))
    logger.info("%s cancelled the Konnect request to %s", user_id, recipient_id)
    return True


async def remove_konnection(store: RecordStore, user_id: str | None, other_id: str) -> None:
    user_id = _require_user(user_id)
    batch = store.batch().delete_konnection(user_id, other_id).delete_konnection(other_id, user_id)
    await store.commit(batch)
    logger.info("Konnection between %s and %s removed", user_id, other_id)


async def list_konnections(store: RecordStore, user_id: str | None) -> dict:
    """Konnections and pending incoming requests for user_id."""
    user_id = _require_user(user_id)
    return {
        "konnections": await store.get_konnections(user_id),
        "requests": await store.get_konnect_requests(user_id),
    }
