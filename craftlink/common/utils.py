import re
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from fastapi.responses import JSONResponse
from craftlink.common.constants import request_id_ctx

_DURATION_RE = re.compile(r"^\s*(\d+)\s*([smhd]?)\s*$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def now() -> datetime:
    return datetime.now(timezone.utc)


def parse_duration(value: Union[str, int]) -> int:
    """Turn "7d" / "12h" / "15m" / "45s" / "3600" into seconds."""
    if isinstance(value, int):
        return value
    match = _DURATION_RE.match(value)
    if not match:
        raise ValueError(f"Unrecognised duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


def build_success(data: Any, request_id: Optional[str] = None) -> Dict[str, Any]:
    return {
        "status": "ok",
        "data": data,
        "error": None,
        "request_id": request_id,
    }


def build_error(code: Union[str, int] = "UNKNOWN_ERROR",
                message: Optional[str] = None,
                details: Optional[Any] = None,
                errors: Optional[Dict[str, Any]] = None,
                request_id: Optional[str] = None) -> Dict[str, Any]:

    error: Dict[str, Any] = {"code": code, "message": message}
    if details is not None:
        error["details"] = details
    if errors is not None:
        error["errors"] = errors
    return {
        "status": "error",
        "data": None,
        "error": error,
        "request_id": request_id,
    }


def json_ok(content: Dict[str, Any], status_code: int = 200, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)


def json_error(content: Dict[str, Any], status_code: int = 500, headers=None) -> JSONResponse:
    return JSONResponse(content, status_code=status_code, headers=headers)


def success_response(data: Any, status_code: int = 200,
                     headers: Optional[Dict[str, Any]] = None) -> JSONResponse:
    content = build_success(data, request_id=request_id_ctx.get())
    return json_ok(content, status_code=status_code, headers=headers)
