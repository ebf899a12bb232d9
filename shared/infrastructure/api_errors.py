"""
Mapping of reservation engine errors onto HTTP responses.

Body: {"kind", "field", "detail", "retryable"}, so clients can point at the
offending field and know whether a retry with fresh availability helps.
"""

from rest_framework import status  # type: ignore
from rest_framework.response import Response  # type: ignore

from shared.domain.errors import ErrorKind, ReservationError

ERROR_STATUS = {
    ErrorKind.SLOT_CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.STORE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorKind.NOT_AUTHORIZED: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INVALID_TRANSITION: status.HTTP_409_CONFLICT,
}


def error_response(error: ReservationError) -> Response:
    return Response(
        error.to_dict(),
        status=ERROR_STATUS.get(error.kind, status.HTTP_400_BAD_REQUEST),
    )
