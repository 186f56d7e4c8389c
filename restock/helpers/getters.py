from starlette.requests import Request

from restock.core.config import settings


def isDebugMode() -> bool:
    return settings.MODE.lower() in ("debug", "development", "dev", "test")


def isSmtpConfigured() -> bool:
    return bool(settings.SMTP_USERNAME and settings.SMTP_PASSWORD)


def getClientIp(request: Request) -> str:
    if settings.TRUSTED_PROXY:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"
