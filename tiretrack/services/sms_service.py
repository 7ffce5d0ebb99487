# tiretrack/services/sms_service.py
"""
Outbound SMS for login codes.
`console` provider only logs the message (development); `http` posts it to the
configured gateway.
"""

import httpx

from tiretrack.config import settings
from tiretrack.utils.logger import get_logger
from tiretrack.utils.normalize import mask_phone

logger = get_logger(__name__)


def otp_message(code: str) -> str:
    return f"Your TireTrack login code is {code}. It expires in {settings.OTP_EXPIRY_MINUTES} minutes."


async def send_sms(phone: str, message: str) -> bool:
    """Returns False (after logging) when the gateway rejects or cannot be reached."""
    provider = settings.SMS_PROVIDER.lower()
    if provider == "console":
        logger.info(f"[SMS] (console) to {phone}: {message}")
        return True

    if provider != "http" or not settings.SMS_API_URL:
        logger.error(f"[SMS] Provider '{settings.SMS_PROVIDER}' is not configured, message to {mask_phone(phone)} dropped")
        return False

    headers = {}
    if settings.SMS_API_KEY:
        headers["Authorization"] = f"Bearer {settings.SMS_API_KEY}"
    payload = {"to": phone, "sender": settings.SMS_SENDER, "message": message}
    try:
        async with httpx.AsyncClient(timeout=settings.SMS_TIMEOUT_SECONDS) as client:
            resp = await client.post(settings.SMS_API_URL, json=payload, headers=headers)
            resp.raise_for_status()
    except httpx.HTTPStatusError as e:
        logger.error(f"[SMS] Gateway returned {e.response.status_code} for {mask_phone(phone)}")
        return False
    except httpx.HTTPError as e:
        logger.error(f"[SMS] Gateway unreachable for {mask_phone(phone)}: {e}")
        return False

    logger.info(f"[SMS] Sent to {mask_phone(phone)}")
    return True


async def send_otp(phone: str, code: str) -> bool:
    return await send_sms(phone, otp_message(code))
