import logging
from contextlib import asynccontextmanager
from datetime import UTC, datetime

import uvicorn
from fastapi import Body, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlmodel import Session
from starlette.concurrency import run_in_threadpool

from config import Settings, get_settings
from crud import create_sweat, delete_sweat, list_sweats, update_sweat
from db import create_db_and_tables, get_session
from errors import ApiError, ClientInputError, NotFoundError, PersistenceError, UpstreamError
from schemas import DeleteResponse, PingResponse, SweatCreate, SweatResponse, SweatUpdate
from upstream import HypixelClient, MojangClient, UrchinClient

settings = get_settings()

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database on startup. Failures are logged; the DB routes report them per request."""
    try:
        create_db_and_tables()
        logger.info("Database initialized")
    except Exception as e:
        logger.warning(f"Database initialization failed, DB routes will error until it is reachable: {str(e)}")
    yield


# Create FastAPI app
app = FastAPI(title="Sweats Relay API", version="1.0.0", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ApiError)
async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in exc.errors()
    )
    error = ClientInputError("Invalid request", problems)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


def get_mojang_client(settings: Settings = Depends(get_settings)) -> MojangClient:
    return MojangClient(settings)


def get_hypixel_client(settings: Settings = Depends(get_settings)) -> HypixelClient:
    return HypixelClient(settings)


def get_urchin_client(settings: Settings = Depends(get_settings)) -> UrchinClient:
    return UrchinClient(settings)


@app.get("/ping", response_model=PingResponse)
def ping():
    """Liveness check."""
    ts = datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    return PingResponse(ok=True, ts=ts)


@app.get("/mojang/{username}")
async def mojang_lookup(username: str, mojang: MojangClient = Depends(get_mojang_client)):
    """Resolve a username to {id, name} via Mojang."""
    try:
        return await mojang.lookup_profile(username)
    except UpstreamError as e:
        logger.error(f"/mojang error for {username}: {e.details}")
        raise


@app.get("/player/{uuid}")
async def player_lookup(uuid: str, hypixel: HypixelClient = Depends(get_hypixel_client)):
    """Fetch raw Hypixel player data by UUID."""
    try:
        return await hypixel.fetch_player(uuid)
    except UpstreamError as e:
        logger.error(f"/player error for {uuid}: {e.details}")
        raise


@app.get("/urchin/{username}")
async def urchin_lookup(
    username: str, response: Response, urchin: UrchinClient = Depends(get_urchin_client)
):
    """Urchin tags for a player. Always 200; the fallback body is flagged in X-Urchin-Fallback."""
    result = await urchin.lookup_tags(username)
    response.headers["X-Urchin-Fallback"] = "true" if result.fallback_used else "false"
    return result.payload


@app.get("/sweats", response_model=list[SweatResponse])
def get_sweats(session: Session = Depends(get_session)):
    """List all sweats, newest first."""
    try:
        sweats = list_sweats(session)
    except ApiError:
        raise
    except Exception as e:
        logger.error(f"Error getting sweats: {str(e)}")
        raise PersistenceError("DB read error") from e

    logger.info(f"Found {len(sweats)} sweats")
    return sweats


@app.post("/sweats", response_model=SweatResponse, status_code=201)
async def add_sweat(
    payload: SweatCreate | None = Body(default=None),
    session: Session = Depends(get_session),
    urchin: UrchinClient = Depends(get_urchin_client),
):
    """Add a sweat. Urchin tags are looked up first; a failed lookup never blocks the save."""
    payload = payload or SweatCreate()
    username = (payload.username or "").strip()
    if not username:
        raise ClientInputError("username required")

    tags = await urchin.lookup_tags(username)
    if tags.fallback_used:
        logger.warning(f"Saving {username} without Urchin tags: {tags.error}")
    urchin_tag = tags.tag_string()

    try:
        sweat = await run_in_threadpool(create_sweat, session, payload, urchin_tag)
    except ApiError:
        raise
    except Exception as e:
        logger.error(f"Error adding sweat: {str(e)}")
        raise PersistenceError("DB write error") from e

    return sweat


@app.delete("/sweats/{sweat_id}", response_model=DeleteResponse)
def remove_sweat(sweat_id: str, session: Session = Depends(get_session)):
    """Delete a sweat by id."""
    logger.info(f"Delete sweat request for ID: {sweat_id}")
    try:
        deleted_id = delete_sweat(session, sweat_id)
    except ApiError:
        raise
    except Exception as e:
        logger.error(f"Error deleting sweat: {str(e)}")
        raise PersistenceError("DB delete error") from e

    if deleted_id is None:
        raise NotFoundError()
    return DeleteResponse(ok=True, deleted_id=deleted_id)


@app.patch("/sweats/{sweat_id}", response_model=SweatResponse)
def patch_sweat(
    sweat_id: str,
    payload: SweatUpdate | None = Body(default=None),
    session: Session = Depends(get_session),
):
    """Update the beaten-by flags and/or urchinTag of a sweat."""
    updates = payload.model_dump(exclude_unset=True) if payload else {}
    try:
        sweat = update_sweat(session, sweat_id, updates)
    except ApiError:
        raise
    except Exception as e:
        logger.error(f"Error updating sweat: {str(e)}")
        raise PersistenceError("DB update error") from e

    if sweat is None:
        raise NotFoundError()
    return sweat


@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Sweats Relay API", "docs": "/docs"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=settings.port)
