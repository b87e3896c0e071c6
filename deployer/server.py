import logging
import pathlib
from concurrent.futures import Future, ThreadPoolExecutor
from functools import lru_cache

from fastapi import Depends, FastAPI, HTTPException
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse

from .logs import setup_logging
from .models import TaskRequest
from .orchestrator import RoundOrchestrator, build_orchestrator
from .security import verify_secret
from .settings import Settings, settings

setup_logging(settings.LOG_FILE_PATH)
logger = logging.getLogger(__name__)

app = FastAPI(title="Task Repository Deployer")

# rounds run here; one future per accepted request
executor = ThreadPoolExecutor(max_workers=settings.MAX_WORKERS, thread_name_prefix="round")


def get_settings() -> Settings:
    return settings


@lru_cache
def get_orchestrator() -> RoundOrchestrator:
    return build_orchestrator(settings)


def get_executor() -> ThreadPoolExecutor:
    return executor


def _log_outcome(future: Future, task: str, round_no: int) -> None:
    exc = future.exception()
    if exc is not None:
        logger.error("task=%s round=%s crashed outside the orchestrator", task, round_no, exc_info=exc)
        return
    outcome = future.result()
    logger.info("task=%s round=%s finished in state %s", task, round_no, outcome.state.value)


# Landing + ops endpoints
@app.get("/", include_in_schema=False)
async def root_redirect():
    return RedirectResponse(url="/docs")


@app.get("/health")
async def health():
    return {"status": "healthy", "endpoints": ["/task"]}


# ---- MAIN ENDPOINT ----
@app.post("/task")
async def receive_task(
    req: TaskRequest,
    cfg: Settings = Depends(get_settings),
    orchestrator: RoundOrchestrator = Depends(get_orchestrator),
    pool: ThreadPoolExecutor = Depends(get_executor),
):
    if not verify_secret(req.secret, cfg.EXPECTED_SECRET):
        logger.warning("rejected task=%s round=%s: invalid secret", req.task, req.round)
        raise HTTPException(status_code=401, detail="Invalid secret")

    logger.info("accepted task=%s round=%s nonce=%s", req.task, req.round, req.nonce)
    future = pool.submit(orchestrator.run, req)
    future.add_done_callback(lambda f: _log_outcome(f, req.task, req.round))
    return JSONResponse(status_code=200, content={"status": "ok", "task": req.task, "round": req.round})


# ---- LOG VIEWER ----
@app.get("/_log", include_in_schema=False)
async def _log(cfg: Settings = Depends(get_settings)):
    path = pathlib.Path(cfg.LOG_FILE_PATH)
    if not path.exists():
        return PlainTextResponse(f"NO LOG: {path} not found\n")
    try:
        return PlainTextResponse(path.read_text(encoding="utf-8"))
    except OSError as e:
        return PlainTextResponse(f"ERROR reading log: {e}\n")
