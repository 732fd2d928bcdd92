from fastapi import HTTPException


def not_found(resource: str, identifier: str) -> HTTPException:
    return HTTPException(
        status_code=404,
        detail={
            "code": "NotFound",
            "description": f"{resource} '{identifier}' not found",
        },
    )


def invalid_parameter(description: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "code": "InvalidParameterValue",
            "description": description,
        },
    )


def upstream_error(status_code: int, description: str) -> HTTPException:
    return HTTPException(
        status_code=status_code if 400 <= status_code < 600 else 502,
        detail={
            "code": "UpstreamError",
            "description": description,
        },
    )


def upstream_unavailable(description: str) -> HTTPException:
    return HTTPException(
        status_code=502,
        detail={
            "code": "UpstreamUnavailable",
            "description": description,
        },
    )
