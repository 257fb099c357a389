"""Classification of unhandled exceptions into error codes."""

from sqlalchemy.exc import SQLAlchemyError

from .enums import ErrorCode

# Checked in order; the first matching group wins
_MESSAGE_RULES = (
    (ErrorCode.TIMEOUT, ("timeout", "timed out", "aborterror")),
    (ErrorCode.NOT_FOUND, ("not found", "404")),
    (ErrorCode.AUTH_FAILED, ("unauthorized", "401", "auth")),
    (ErrorCode.FORBIDDEN, ("forbidden", "403")),
    (ErrorCode.VALIDATION, ("validation", "invalid", "required")),
    (ErrorCode.EXTERNAL_SERVICE, ("fetch", "econnrefused", "connection refused", "dns")),
    (ErrorCode.DB_ERROR, ("duplicate", "violates", "relation", "constraint")),
)


def classify_error(exc: BaseException) -> ErrorCode:
    """Map an exception to an :class:`ErrorCode`.

    Timeouts and SQLAlchemy errors are recognised by type, everything else by
    keywords in the message. Unrecognised errors are ``internal``.
    """
    if isinstance(exc, TimeoutError):
        return ErrorCode.TIMEOUT

    msg = str(exc).lower()
    for code, keywords in _MESSAGE_RULES:
        if any(keyword in msg for keyword in keywords):
            return code

    if isinstance(exc, SQLAlchemyError):
        return ErrorCode.DB_ERROR
    if isinstance(exc, ConnectionError):
        return ErrorCode.EXTERNAL_SERVICE
    return ErrorCode.INTERNAL
