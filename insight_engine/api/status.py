from typing import Dict, Optional

from fastapi import status

ERROR_STATUS_CODES: Dict[str, int] = {
    "Timeout": status.HTTP_504_GATEWAY_TIMEOUT,
    "PoolExhausted": status.HTTP_503_SERVICE_UNAVAILABLE,
    "ConnectFailed": status.HTTP_503_SERVICE_UNAVAILABLE,
    "ConnectionNotFound": status.HTTP_404_NOT_FOUND,
    "SemanticModelNotFound": status.HTTP_404_NOT_FOUND,
    "InternalError": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def status_for_error(error_type: Optional[str]) -> int:
    """HTTP status for a response carrying ``error_type``; anything else the caller sent wrong is a 400."""
    if error_type is None:
        return status.HTTP_200_OK
    return ERROR_STATUS_CODES.get(error_type, status.HTTP_400_BAD_REQUEST)
