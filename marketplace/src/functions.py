from typing import List, Dict, Optional, Any
from fastapi import status
from PIL import Image, UnidentifiedImageError
from io import BytesIO

from marketplace.src import schemas
from marketplace.src.exceptions import APIException


def makeExceptionResponses(exceptions: List[APIException]) -> Dict[int, dict]:
    """
    Generate OpenAPI response documentation by fusing multiple APIException classes or instances.

    Args:
        exceptions (List[APIException]): Exception classes or instantiated exceptions.

    Returns:
        Dict[int, dict]: A dictionary of OpenAPI response specs grouped by status code.
    """
    responses = {}

    for exception in exceptions:
        status_code = exception.status_code
        example_key = getattr(exception, "__name__", type(exception).__name__)
        example_value = {
            "summary": str(exception.headers),
            "value": {
                "data": None,
                "Status": {"Code": status_code, "Message": exception.detail},
            },
        }

        if status_code not in responses:
            responses[status_code] = {
                "model": schemas.ErrorResponse,
                "content": {
                    "application/json": {"examples": {example_key: example_value}}
                },
            }
        else:
            responses[status_code]["content"]["application/json"]["examples"][
                example_key
            ] = example_value

    return responses


def makeResponse(
    data: Any, message: str, code: int = status.HTTP_200_OK
) -> Dict[str, Any]:
    """
    Wrap a payload in the response envelope shared by every endpoint.

    Example:
        >>> makeResponse({"id": 1}, "Rider fetched successfully")
        {'data': {'id': 1}, 'Status': {'Code': 200, 'Message': 'Rider fetched successfully'}}
    """
    return {"data": data, "Status": {"Code": code, "Message": message}}


def enumStr(enumClass) -> str:
    """
    Convert an Enum class into a comma-separated string of its members.

    Each enum member is formatted as "<NAME>: <VALUE>".

    Example:
        >>> enumStr(RiderStatus)
        'AVAILABLE: 1, BUSY: 2, OFFLINE: 3'
    """
    return ", ".join(f"{x.name}: {x.value}" for x in enumClass)


def isValidTransition(
    transitions: dict[Any, list[Any]], old_state: Any, new_state: Any
) -> bool:
    """
    Check if a state transition is valid.

    Args:
        transitions (dict[Any, list[Any]]): Mapping of valid transitions.
            Example:
                {
                    "ASSIGNED": ["PICKED_UP", "CANCELLED"],
                    "DELIVERED": [],
                }
        old_state (Any): Current state value.
        new_state (Any): Desired new state value.

    Returns:
        bool: True if transition is valid, False otherwise.

    Notes:
        - If `old_state` is not in the transitions mapping, this will return False.
    """
    if not transitions:
        return False
    if old_state not in transitions:
        return False
    return new_state in transitions[old_state]


def updateIfChanged(targetObj, sourceObj, fields: List[str]) -> None:
    """
    Update attributes on a target object from a source object
    only if the values differ and the new value is not None.

    Designed for use with SQLAlchemy models, where `fields` are typically
    provided as `Model.field.key`.

    Example:
        >>> updateIfChanged(
        ...     rider,
        ...     fParam,
        ...     [
        ...         Rider.name.key,
        ...         Rider.vehicle_number.key,
        ...     ],
        ... )
        # rider will be updated where values differ; unchanged fields are skipped silently
    """
    for field in fields:
        new_value = getattr(sourceObj, field, None)
        if new_value is not None:
            old_value = getattr(targetObj, field)
            if old_value != new_value:
                setattr(targetObj, field, new_value)


def resizeImage(
    imageBytes: bytes, format: str, height: int = None, width: int = None
) -> Optional[bytes]:
    """
    Resize an image (bytes) to fit the given box while preserving aspect ratio.

    If `height` or `width` is not provided, the original dimension is used.
    The output image is always converted to RGB mode to avoid format issues
    (e.g., when saving PNG with transparency to JPEG).

    Returns:
        Optional[bytes]: The resized image in the requested format,
        or None when the bytes are not a readable image.
    """
    try:
        image = Image.open(BytesIO(imageBytes))
        image.load()
    except (UnidentifiedImageError, OSError):
        return None

    if height is None:
        height = image.height
    if width is None:
        width = image.width

    newSize = (width, height)
    image.thumbnail(newSize)  # preserves aspect ratio, fits inside box

    if image.mode != "RGB":
        image = image.convert("RGB")

    with BytesIO() as outputBuffer:
        image.save(outputBuffer, format)
        return outputBuffer.getvalue()


def splitMIME(mimeType: str) -> Dict[str, Optional[str]]:
    """
    Safely split a MIME type string into type, subtype, and optional parameters.

    Example:
        >>> splitMIME("image/jpeg")
        {'type': 'image', 'sub_type': 'jpeg', 'parameter': None}

        >>> splitMIME("text/html; charset=UTF-8")
        {'type': 'text', 'sub_type': 'html', 'parameter': 'charset=UTF-8'}

        >>> splitMIME("invalidstring")
        {'type': 'invalidstring', 'sub_type': None, 'parameter': None}
    """
    if not mimeType or "/" not in mimeType:
        return {"type": mimeType or None, "sub_type": None, "parameter": None}

    type_part, rest = mimeType.split("/", 1)
    type_part = type_part.strip() or None

    if ";" in rest:
        subType, *params = [p.strip() for p in rest.split(";")]
        parameter = "; ".join(params) if params else None
    else:
        subType, parameter = rest.strip() or None, None

    return {"type": type_part, "sub_type": subType, "parameter": parameter}
