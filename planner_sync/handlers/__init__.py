"""
Handler modules with automatic API registration
Handlers decorated with @api_handler are collected in a registry and mounted
as FastAPI routes by register_fastapi_routes()
"""

import inspect
from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    Dict,
    List,
    Optional,
    Type,
    TypeVar,
)

from planner_sync.core.logger import get_logger

if TYPE_CHECKING:
    from fastapi import FastAPI

F = TypeVar("F", bound=Callable[..., Any])

logger = get_logger(__name__)

# Global API handler registry
_handler_registry: Dict[str, Dict[str, Any]] = {}


def api_handler(
    body: Optional[Type] = None,
    method: str = "POST",
    path: Optional[str] = None,
    tags: Optional[List[str]] = None,
    summary: Optional[str] = None,
    description: Optional[str] = None,
):
    """
    API handler decorator

    @param body - Optional request model type for parameter validation
    @param method - HTTP method (GET, POST, PUT, DELETE, PATCH)
    @param path - Route path, defaults to /<function name>
    @param tags - API tags, defaults to the handler module name
    @param summary - API summary, defaults to the first docstring line
    @param description - API description, defaults to the docstring
    """

    def decorator(func: F) -> F:
        func_name = getattr(func, "__name__", "unknown")
        func_module = getattr(func, "__module__", "")
        module_name = func_module.split(".")[-1] if func_module else "unknown"
        func_doc = getattr(func, "__doc__", None)

        _handler_registry[func_name] = {
            "func": func,
            "body": body,
            "method": method.upper(),
            "path": path or f"/{func_name}",
            "tags": tags or [module_name],
            "module": module_name,
            "summary": summary or (func_doc.split("\n")[0] if func_doc else func_name),
            "description": description or func_doc or "",
            "signature": inspect.signature(func),
        }

        # Keep original function unchanged
        return func

    return decorator


def get_registered_handlers() -> Dict[str, Dict[str, Any]]:
    """
    Get registered handler information (for debugging)

    @returns Handler registry
    """
    return _handler_registry.copy()


def register_fastapi_routes(app: "FastAPI", prefix: str = "/api") -> None:
    """
    Register all functions decorated with @api_handler as FastAPI routes

    @param app - FastAPI application instance
    @param prefix - Route prefix
    """
    logger.info(
        f"Starting FastAPI route registration, {len(_handler_registry)} handlers"
    )

    routers = {
        "GET": app.get,
        "POST": app.post,
        "PUT": app.put,
        "DELETE": app.delete,
        "PATCH": app.patch,
    }

    for handler_name, handler_info in _handler_registry.items():
        method = handler_info.get("method", "POST")
        full_path = f"{prefix}{handler_info.get('path', f'/{handler_name}')}"

        router = routers.get(method)
        if router is None:
            logger.warning(f"Unknown HTTP method: {method} for {handler_name}")
            continue

        router(
            full_path,
            tags=handler_info.get("tags", []),
            summary=handler_info.get("summary", handler_name),
            description=handler_info.get("description", ""),
            response_model=None,
        )(handler_info["func"])

        logger.debug(
            f"✓ Registered route: {method} {full_path} ({handler_name} from {handler_info.get('module')})"
        )

    logger.info(
        f"FastAPI route registration completed: {len(_handler_registry)} routes"
    )


# Import all handler modules to trigger decorator registration
# Note: These imports must be after all decorator definitions to avoid circular imports
# ruff: noqa: E402
from . import duplicates, local_data, migration

__all__ = [
    "api_handler",
    "register_fastapi_routes",
    "get_registered_handlers",
    "duplicates",
    "local_data",
    "migration",
]
