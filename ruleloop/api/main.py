"""
FastAPI main application
REST API endpoints for ruleloop
"""

from fastapi import FastAPI, HTTPException, Depends, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import Any, Dict, Optional
import logging
import uuid

from ..config import get_settings
from ..database import SessionFactory, get_session_factory, session_scope
from ..core.automation import (
    AutomationEngine,
    AutomationScheduler,
    ExecutionRecorder,
    RuleStore,
    build_engine,
    is_supported,
)
from ..core.exceptions import RuleNotFoundError, RuleLoopException
from ..core.generation.registry import GenerationRegistry
from ..core.logging_config import setup_logging, set_trace_id, clear_trace_id
from .schemas import (
    RuleCreate, RuleUpdate, RuleResponse, RuleListResponse,
    ExecutionListResponse, PassResultResponse, MessageResponse
)

# ============================================================================
# LOGGING CONFIGURATION
# ============================================================================

# Uses JSON logs in production (JSON_LOGS=true), standard logs in development
_settings = get_settings()
setup_logging(
    level=_settings.log_level,
    json_logs=_settings.json_logs,
    log_file=_settings.log_file
)

logger = logging.getLogger(__name__)

# ============================================================================
# FASTAPI APP CONFIGURATION
# ============================================================================

app = FastAPI(
    title="ruleloop API",
    description="""
# ruleloop

Automation rules that run an LLM action on every new domain event.

## Loop

Every tick (15 s by default) the loop loads the active rules, fetches the
candidate events for each rule's trigger, runs the rule's action once per
event and stores one execution record per attempt.

Supported trigger/action pairs:

- `new_query` + `categorize`
- `new_query` + `draft_response`
- `workflow_start` + `validate`

Other pairs can be stored but are skipped by the loop (`is_supported: false`).

## Running a pass

- **POST /automations/run** runs one pass now and returns its summary
- Periodic passes run either in-process (`AUTOMATION_SCHEDULER=inprocess`)
  or through Celery beat (`AUTOMATION_SCHEDULER=celery`)
    """,
    version="0.1.0",
    openapi_tags=[
        {
            "name": "health",
            "description": "Health checks and system status"
        },
        {
            "name": "rules",
            "description": "Automation rule CRUD. Rules bind a trigger type to an action type."
        },
        {
            "name": "executions",
            "description": "Execution history. One record per invocation attempt."
        },
        {
            "name": "automations",
            "description": "Run the automation loop on demand."
        }
    ]
)

# ============================================================================
# MIDDLEWARE - CORS Configuration
# ============================================================================

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",  # Local development (Next.js default)
        "http://localhost:5173",  # Local development (Vite default)
    ],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ============================================================================
# DEPENDENCIES
# ============================================================================

_automation_engine: Optional[AutomationEngine] = None


def get_session_factory_dep() -> SessionFactory:
    """Session factory of the configured database (overridden in tests)"""
    return get_session_factory()


def get_db(factory: SessionFactory = Depends(get_session_factory_dep)):
    """Dependency for database session"""
    with session_scope(factory) as db:
        yield db


def get_rule_store(factory: SessionFactory = Depends(get_session_factory_dep)) -> RuleStore:
    return RuleStore(factory)


def get_recorder(factory: SessionFactory = Depends(get_session_factory_dep)) -> ExecutionRecorder:
    return ExecutionRecorder(factory)


def get_automation_engine() -> AutomationEngine:
    """
    Process-wide engine, so its pass guard covers both the scheduler
    and POST /automations/run.
    """
    global _automation_engine
    if _automation_engine is None:
        settings = get_settings()
        _automation_engine = build_engine(
            get_session_factory(),
            GenerationRegistry.get_service(settings.automation_model),
            event_limit=settings.automation_event_limit,
        )
    return _automation_engine


# ============================================================================
# MIDDLEWARE - Request ID Tracking
# ============================================================================

@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """
    Middleware to add request ID to all requests.

    - Generates UUID for each request
    - Sets request ID in logging context
    - Adds X-Request-ID header to response
    - Clears request ID after response
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    set_trace_id(request_id)

    logger.info(
        f"{request.method} {request.url.path}",
        extra={
            "method": request.method,
            "path": request.url.path,
            "client_ip": request.client.host if request.client else None,
        }
    )

    try:
        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.info(
            f"Response {response.status_code}",
            extra={
                "status_code": response.status_code,
            }
        )

        return response

    except Exception as e:
        logger.exception("Unhandled exception in request", extra={"error": str(e)})
        raise

    finally:
        clear_trace_id()


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(HTTPException)
async def http_exception_handler(request, exc):
    """Custom HTTP exception handler for better error responses"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.detail,
            "status_code": exc.status_code
        }
    )


def _raise_http(exc: Exception):
    """Map domain exceptions onto HTTP errors"""
    if isinstance(exc, RuleNotFoundError):
        raise HTTPException(status_code=404, detail=exc.message)
    if isinstance(exc, ValueError):
        raise HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, RuleLoopException):
        logger.error(f"Request failed: {exc.message}")
        raise HTTPException(status_code=500, detail=exc.message)
    raise exc


# ============================================================================
# LIFECYCLE - In-process scheduler
# ============================================================================

@app.on_event("startup")
async def start_scheduler():
    settings = get_settings()
    if settings.automation_scheduler != "inprocess":
        logger.info(f"In-process scheduler disabled (AUTOMATION_SCHEDULER={settings.automation_scheduler})")
        return

    scheduler = AutomationScheduler(
        get_automation_engine(),
        interval=settings.automation_interval_seconds,
    )
    app.state.scheduler = scheduler
    app.state.scheduler_handle = scheduler.start()


@app.on_event("shutdown")
async def stop_scheduler():
    scheduler = getattr(app.state, "scheduler", None)
    handle = getattr(app.state, "scheduler_handle", None)
    if scheduler is not None and handle is not None:
        await scheduler.stop(handle)
        app.state.scheduler_handle = None


# ============================================================================
# ROOT & HEALTH
# ============================================================================

@app.get(
    "/",
    tags=["health"],
    summary="API root",
    description="Returns basic API information and links to documentation."
)
def root():
    """Root endpoint - Returns API info"""
    return {
        "name": "ruleloop API",
        "version": "0.1.0",
        "status": "healthy",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get(
    "/health",
    tags=["health"],
    summary="Health check (lightweight)",
    description="Lightweight health check - just verifies the API server is running."
)
def health_check():
    return {
        "status": "healthy",
        "service": "ruleloop API",
        "version": "0.1.0"
    }


@app.get(
    "/metrics",
    tags=["health"],
    summary="System metrics",
    description="""
    Returns:
    - **executions**: Automation execution statistics (last 24 hours)
    - **error_rate**: Error rate (last 1 hour)
    - **circuit_breaker**: Generation service circuit breaker status
    - **rules**: total_rules, active_rules, unsupported_active_rules, rules_with_executions
    - **failing_rules**: Rules with the most failed executions (last 24 hours)
    - **database**: connected, response_time_ms
    """
)
def get_metrics(db: Session = Depends(get_db)):
    """Get system metrics"""
    from ..core.metrics import MetricsCollector

    try:
        collector = MetricsCollector(db)
        metrics = collector.get_all_metrics()

        logger.info(
            "Metrics collected",
            extra={
                "success_rate": metrics["executions"]["success_rate"],
                "error_rate": metrics["error_rate"]["error_rate"],
                "circuit_breaker_state": metrics["circuit_breaker"]["state"]
            }
        )

        return metrics

    except Exception as e:
        logger.exception("Failed to collect metrics")
        raise HTTPException(
            status_code=500,
            detail=f"Failed to collect metrics: {str(e)}"
        )


# ============================================================================
# RULES CRUD
# ============================================================================

def _rule_response(rule: Dict[str, Any], rates: Dict[int, float]) -> Dict[str, Any]:
    return {
        **rule,
        "is_supported": is_supported(rule["trigger_type"], rule["action_type"]),
        "success_rate": rates.get(rule["id"]),
    }


@app.get(
    "/rules",
    response_model=RuleListResponse,
    tags=["rules"],
    summary="List rules",
    description="All automation rules, most recently updated first."
)
async def list_rules(
    store: RuleStore = Depends(get_rule_store),
    recorder: ExecutionRecorder = Depends(get_recorder)
):
    try:
        rules = await store.list_rules()
        rates = await recorder.success_rates()
    except Exception as e:
        _raise_http(e)

    return {"rules": [_rule_response(rule, rates) for rule in rules], "total": len(rules)}


@app.post(
    "/rules",
    response_model=RuleResponse,
    status_code=201,
    tags=["rules"],
    summary="Create rule",
    description="""
    Create an automation rule.

    `trigger_type` and `action_type` must be known values; pairs the loop
    cannot run are accepted and reported with `is_supported: false`.
    """
)
async def create_rule(rule: RuleCreate, store: RuleStore = Depends(get_rule_store)):
    try:
        created = await store.create(rule.model_dump())
    except Exception as e:
        _raise_http(e)

    return _rule_response(created, {})


@app.get(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    tags=["rules"],
    summary="Get rule"
)
async def get_rule(
    rule_id: int,
    store: RuleStore = Depends(get_rule_store),
    recorder: ExecutionRecorder = Depends(get_recorder)
):
    try:
        rule = await store.get(rule_id)
        rates = await recorder.success_rates()
    except Exception as e:
        _raise_http(e)

    return _rule_response(rule, rates)


@app.patch(
    "/rules/{rule_id}",
    response_model=RuleResponse,
    tags=["rules"],
    summary="Update rule",
    description="Partial update: only the fields present in the body change."
)
async def update_rule(
    rule_id: int,
    changes: RuleUpdate,
    store: RuleStore = Depends(get_rule_store),
    recorder: ExecutionRecorder = Depends(get_recorder)
):
    fields = changes.model_dump(exclude_unset=True)
    # agent_name is the only nullable field a client may clear
    fields = {key: value for key, value in fields.items() if value is not None or key == "agent_name"}

    try:
        rule = await store.update(rule_id, fields)
        rates = await recorder.success_rates()
    except Exception as e:
        _raise_http(e)

    return _rule_response(rule, rates)


@app.post(
    "/rules/{rule_id}/toggle",
    response_model=RuleResponse,
    tags=["rules"],
    summary="Toggle rule",
    description="Flip is_active. Execution history and counters are kept."
)
async def toggle_rule(
    rule_id: int,
    store: RuleStore = Depends(get_rule_store),
    recorder: ExecutionRecorder = Depends(get_recorder)
):
    try:
        rule = await store.toggle(rule_id)
        rates = await recorder.success_rates()
    except Exception as e:
        _raise_http(e)

    return _rule_response(rule, rates)


@app.delete(
    "/rules/{rule_id}",
    response_model=MessageResponse,
    tags=["rules"],
    summary="Delete rule",
    description="Delete a rule together with its execution history."
)
async def delete_rule(rule_id: int, store: RuleStore = Depends(get_rule_store)):
    try:
        await store.delete(rule_id)
    except Exception as e:
        _raise_http(e)

    return {"message": f"Rule {rule_id} deleted successfully"}


# ============================================================================
# EXECUTIONS
# ============================================================================

@app.get(
    "/rules/{rule_id}/executions",
    response_model=ExecutionListResponse,
    tags=["executions"],
    summary="List executions of a rule"
)
async def list_rule_executions(
    rule_id: int,
    limit: int = 50,
    store: RuleStore = Depends(get_rule_store),
    recorder: ExecutionRecorder = Depends(get_recorder)
):
    try:
        await store.get(rule_id)
        executions = await recorder.list_executions(rule_id=rule_id, limit=limit)
    except Exception as e:
        _raise_http(e)

    return {"executions": executions, "total": len(executions)}


@app.get(
    "/executions",
    response_model=ExecutionListResponse,
    tags=["executions"],
    summary="List executions",
    description="""
    List automation executions, newest first.

    ## Filters

    - **status**: `completed` or `failed` (e.g., `?status=failed`)
    - **limit**: Max records (e.g., `?limit=20`)
    """
)
async def list_executions(
    status: Optional[str] = None,
    limit: int = 50,
    recorder: ExecutionRecorder = Depends(get_recorder)
):
    try:
        executions = await recorder.list_executions(status=status, limit=limit)
    except Exception as e:
        _raise_http(e)

    return {"executions": executions, "total": len(executions)}


# ============================================================================
# AUTOMATIONS
# ============================================================================

@app.post(
    "/automations/run",
    response_model=PassResultResponse,
    tags=["automations"],
    summary="Run one pass now",
    description="""
    Run one automation pass synchronously and return its summary.

    If a pass is already running on this process the call returns
    immediately with `skipped: true`.
    """
)
async def run_automations(engine: AutomationEngine = Depends(get_automation_engine)):
    result = await engine.run_pass()
    return result.to_dict()
