"""
api/app.py

FastAPI application for the Wolkenlauf VM provisioner.

Endpoints:
  GET    /healthz                          — liveness probe
  GET    /providers                        — registered backends
  POST   /vm/create                        — create a VM            → 201 + VM
  DELETE /vm/{vm_id}?provider=aws|hetzner  — tear a VM down         → 200
  GET    /vm/{vm_id}/status?provider=...   — live canonical status  → 200

Error mapping (one handler for every ProviderError):
  ClientInputError / body validation  → 400
  NotFoundError                       → 404
  ConfigurationError                  → 503  (operator must set credentials)
  anything else from a provider       → 502  (vendor refused or lookup failed)

Design decisions:
  - Routes are plain `def`, so FastAPI runs each blocking SDK call in its
    threadpool; one slow vendor call only holds up its own request.
  - The Dispatcher is built once at import and handed out through the
    get_dispatcher dependency, which tests override.
  - Nothing is persisted. The caller is the system of record.
"""

import logging
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import load_config
from providers import (
    ConfigurationError,
    Dispatcher,
    NotFoundError,
    ProviderError,
)
from api.middleware import (
    RequestLogMiddleware,
    configure_audit_log,
    get_client_ip,
    write_audit,
)
from api.schemas import (
    MessageResponse,
    ProvidersResponse,
    VMCreateRequest,
    VMCreateResponse,
    VMStatusResponse,
)

logger = logging.getLogger("wolkenlauf.api")

# ---------------------------------------------------------------------------
# App setup
# ---------------------------------------------------------------------------

_config = load_config()
_dispatcher = Dispatcher.from_config(_config)
configure_audit_log(_config.audit_log_file)

app = FastAPI(
    title="Wolkenlauf VM Provisioner",
    description=(
        "Provision virtual machines on AWS (GPU) and Hetzner Cloud (CPU) "
        "behind one request/response contract.\n\n"
        "Statuses are normalised to pending | running | stopping | stopped | terminated."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_config.allowed_origins,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)
app.add_middleware(RequestLogMiddleware)


def get_dispatcher() -> Dispatcher:
    """FastAPI dependency returning the process-wide Dispatcher."""
    return _dispatcher


# ---------------------------------------------------------------------------
# Error handling
# ---------------------------------------------------------------------------

def _status_code_for(exc: ProviderError) -> int:
    if exc.is_client_fault:
        return 400
    if isinstance(exc, NotFoundError):
        return 404
    if isinstance(exc, ConfigurationError):
        return 503
    return 502


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    status_code = _status_code_for(exc)
    log_fn = logger.info if status_code < 500 else logger.error
    log_fn("❌ %s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """Missing or malformed fields are a client error (400), like any other bad input."""
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}"
        for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"detail": f"Invalid request body: {problems}"})


def _require_provider(provider: Optional[str]) -> str:
    if not provider:
        raise HTTPException(status_code=400, detail="provider query parameter is required")
    return provider


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------

@app.get("/healthz", tags=["Meta"], summary="Liveness probe")
def healthz():
    """Returns 200 OK. Used by load balancers and Docker HEALTHCHECK."""
    return {"status": "ok"}


@app.get("/providers", response_model=ProvidersResponse, tags=["Meta"], summary="Registered backends")
def list_providers(dispatcher: Dispatcher = Depends(get_dispatcher)):
    return ProvidersResponse(providers=dispatcher.supported_providers())


# ---------------------------------------------------------------------------
# VM lifecycle
# ---------------------------------------------------------------------------

@app.post(
    "/vm/create",
    response_model=VMCreateResponse,
    status_code=201,
    tags=["VMs"],
    summary="Create a VM on the requested provider",
)
def create_vm(
    req: VMCreateRequest,
    request: Request,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    Validates provider and instance type, then provisions synchronously.

    The response carries the generated SSH password. It is not stored
    anywhere; this is the only time the caller sees it.
    """
    caller_ip = get_client_ip(request)
    vm = dispatcher.create(req.to_domain())
    write_audit(
        "CREATE", caller_ip,
        f"provider={vm.provider} type={vm.instance_type} id={vm.id} user={req.user_id}",
    )
    logger.info("✅ VM created: %s (id=%s, ip=%s)", vm.name, vm.id, vm.public_ip or "-")
    return VMCreateResponse.from_domain(vm)


@app.delete(
    "/vm/{vm_id}",
    response_model=MessageResponse,
    tags=["VMs"],
    summary="Delete a VM and release its address",
)
def delete_vm(
    vm_id: str,
    request: Request,
    provider: Optional[str] = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    provider = _require_provider(provider)
    dispatcher.delete(vm_id, provider)
    write_audit("DELETE", get_client_ip(request), f"provider={provider} id={vm_id}")
    return MessageResponse(message="VM deleted successfully")


@app.get(
    "/vm/{vm_id}/status",
    response_model=VMStatusResponse,
    tags=["VMs"],
    summary="Query real-time VM status from the cloud API",
)
def get_vm_status(
    vm_id: str,
    provider: Optional[str] = None,
    dispatcher: Dispatcher = Depends(get_dispatcher),
):
    """
    Calls the cloud API every time; nothing is cached.
    Returns the canonical status regardless of provider.
    """
    provider = _require_provider(provider)
    return VMStatusResponse.from_domain(dispatcher.status(vm_id, provider))
