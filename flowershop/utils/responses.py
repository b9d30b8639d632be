from typing import Any, Optional

from fastapi.responses import JSONResponse


def ok(data: Any = None, status_code: int = 200) -> JSONResponse:
    return JSONResponse({"data": data, "error": None}, status_code=status_code)


def fail(error: str, status_code: int, data: Optional[Any] = None) -> JSONResponse:
    return JSONResponse({"data": data, "error": error}, status_code=status_code)
