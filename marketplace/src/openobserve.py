import json, requests
from requests import Response

from marketplace.src.constants import (
    OPENOBSERVE_HOST,
    OPENOBSERVE_ORG,
    OPENOBSERVE_PASSWORD,
    OPENOBSERVE_PORT,
    OPENOBSERVE_PROTOCOL,
    OPENOBSERVE_STREAM,
    OPENOBSERVE_TIMEOUT,
    OPENOBSERVE_USERNAME,
)

# Shared HTTP session (keeps the connection to OpenObserve alive)
httpSession = requests.Session()
httpSession.auth = (OPENOBSERVE_USERNAME, OPENOBSERVE_PASSWORD)
httpSession.headers.update({"Content-type": "application/json"})

# Ingestion endpoint of the audit stream
openobserveURL = (
    f"{OPENOBSERVE_PROTOCOL}://{OPENOBSERVE_HOST}:{OPENOBSERVE_PORT}"
    f"/api/{OPENOBSERVE_ORG}/{OPENOBSERVE_STREAM}/_json"
)


def logEvent(eventData: dict) -> Response:
    """
    Ship one audit record to the OpenObserve stream.

    Values that are not JSON native (datetimes, decimals) are sent as strings.

    Args:
        eventData (dict): The audit record.
            Example:
                {
                    "_method": "PATCH",
                    "_path": "/rider/assigned-orders/7/status",
                    "_app_id": 2,
                    "id": 7,
                    "status": 2
                }

    Returns:
        requests.Response: The HTTP response returned by OpenObserve.
    """
    return httpSession.post(
        openobserveURL,
        data=json.dumps([eventData], default=str),
        timeout=OPENOBSERVE_TIMEOUT,
    )
