from contextvars import ContextVar
from typing import Dict, Optional


_request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_client_ip_var: ContextVar[Optional[str]] = ContextVar("client_ip", default=None)
_path_var: ContextVar[Optional[str]] = ContextVar("path", default=None)


def get_request_id() -> Optional[str]:
    return _request_id_var.get()


def set_request_context(request_id: str, client_ip: Optional[str] = None, path: Optional[str] = None) -> None:
    _request_id_var.set(request_id)
    _client_ip_var.set(client_ip)
    _path_var.set(path)


def get_request_context() -> Dict[str, Optional[str]]:
    return {
        "request_id": _request_id_var.get(),
        "client_ip": _client_ip_var.get(),
        "path": _path_var.get(),
    }


def clear_request_context() -> None:
    _request_id_var.set(None)
    _client_ip_var.set(None)
    _path_var.set(None)
