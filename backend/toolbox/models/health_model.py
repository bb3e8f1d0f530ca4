from pydantic import BaseModel


class HealthResponse(BaseModel):
    """Health check response model"""
    status: str
    api_key_configured: bool
    platforms: list[str]
    backend_version: str = "1.0.0"
