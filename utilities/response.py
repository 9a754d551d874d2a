from typing import Any, Dict, Optional
from pydantic import BaseModel

class APIResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    error: Optional[str] = None

def _envelope(response: APIResponse) -> Dict:
    # Unset top-level fields are omitted; `data` is passed through untouched
    return {key: value for key, value in response.model_dump().items() if value is not None}

def success_response(data: Any = None, message: str = None) -> Dict:
    """Create a success response"""
    return _envelope(APIResponse(
        success=True,
        data=data,
        message=message
    ))

def error_response(message: str, data: Any = None, error: str = None) -> Dict:
    """Create an error response"""
    return _envelope(APIResponse(
        success=False,
        message=message,
        data=data,
        error=error
    ))
