"""FastAPI wiring."""

from authgate.api.app import AuthModule, get_auth_service, normalize_base_path

__all__ = ["AuthModule", "get_auth_service", "normalize_base_path"]
