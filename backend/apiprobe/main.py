import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

import httpx
from fastapi import Depends, FastAPI, Header, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from .classifier import classify
from .composer import parse_body
from .config import settings
from .db import Base, SessionLocal, engine, get_db
from .dispatcher import Dispatcher
from .exceptions import ClientError, StoreError
from .logging_config import setup_logging
from .models import Environment, EnvironmentVariable
from .pipeline import Workbench
from .resolver import SqlEnvironmentStore
from .schemas import EnvOut, RequestDraft, SaveCollection, SaveCollectionItem, SaveEnv, SendRequest
from .session import WorkbenchSession
from .store import HistoryRecorder, StoreClient

logger = logging.getLogger("apiprobe.main")


def create_app(
    http_client: Optional[httpx.AsyncClient] = None,
    session_factory: Callable[[], Session] = SessionLocal,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging()
        if session_factory is SessionLocal:
            Base.metadata.create_all(bind=engine)
        client = http_client or httpx.AsyncClient()
        store = StoreClient(client)
        history = HistoryRecorder(store)
        app.state.store = store
        app.state.history = history
        app.state.workbench = Workbench(
            environments=SqlEnvironmentStore(session_factory),
            dispatcher=Dispatcher(client),
            history=history,
        )
        logger.info("apiprobe ready (proxy=%s, store=%s)", settings.PROXY_URL, settings.STORE_URL)
        try:
            yield
        finally:
            await history.drain()
            if http_client is None:
                await client.aclose()

    app = FastAPI(title="apiprobe", version="0.4.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(StoreError)
    async def store_error_handler(request: Request, exc: StoreError):
        logger.error("Store failure on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(
            status_code=status.HTTP_502_BAD_GATEWAY,
            content={"detail": f"Store unavailable: {exc.operation}"},
        )

    @app.exception_handler(ClientError)
    async def client_error_handler(request: Request, exc: ClientError):
        return JSONResponse(
            status_code=422,
            content=classify(exc).model_dump(),
        )

    _register_routes(app)
    return app


def get_workbench(request: Request) -> Workbench:
    return request.app.state.workbench


def get_store(request: Request) -> StoreClient:
    return request.app.state.store


def _register_routes(app: FastAPI):
    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/send")
    async def send(req: SendRequest, workbench: Workbench = Depends(get_workbench)):
        session = WorkbenchSession(
            draft=RequestDraft(url=req.url, method=req.method, headers=req.headers, body=req.body),
            active_environment_id=req.environment_id,
            user_id=req.user_id,
        )
        result = await workbench.send(session)
        return result.model_dump()

    # ---- history ----

    @app.get("/history")
    async def get_history(user_id: str = Header(...), store: StoreClient = Depends(get_store)):
        items = await store.list_history(user_id)
        return [i.model_dump() for i in items]

    @app.delete("/history/{item_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_history_item(item_id: str, user_id: str = Header(...), store: StoreClient = Depends(get_store)):
        await store.delete_history_item(item_id, user_id)

    @app.delete("/history", status_code=status.HTTP_204_NO_CONTENT)
    async def clear_history(user_id: str = Header(...), store: StoreClient = Depends(get_store)):
        await store.clear_history(user_id)

    # ---- collections ----

    @app.get("/collections")
    async def list_collections(user_id: str = Header(...), store: StoreClient = Depends(get_store)):
        return await store.list_collections(user_id)

    @app.post("/collections", status_code=status.HTTP_201_CREATED)
    async def create_collection(payload: SaveCollection, store: StoreClient = Depends(get_store)):
        return await store.create_collection(payload.name, payload.user_id)

    @app.post("/collection-items", status_code=status.HTTP_201_CREATED)
    async def save_collection_item(payload: SaveCollectionItem, store: StoreClient = Depends(get_store)):
        # Saved as typed: placeholders stay unresolved so the item follows the active environment.
        return await store.save_collection_item(
            {
                "collection_id": payload.collection_id,
                "name": payload.name,
                "url": payload.url,
                "method": payload.method.value,
                "headers": {h.key: h.value for h in payload.headers if h.key},
                "body": parse_body(payload.body) if payload.body.strip() else {},
                "user_id": payload.user_id,
            }
        )

    # ---- environments ----

    @app.post("/environments", status_code=status.HTTP_201_CREATED)
    def create_env(payload: SaveEnv, user_id: Optional[str] = Header(None), db: Session = Depends(get_db)):
        env = Environment(name=payload.name, user_id=user_id)
        env.variables = _variables_from(payload)
        db.add(env)
        db.commit()
        db.refresh(env)
        return {"id": env.id}

    @app.get("/environments")
    def list_envs(user_id: Optional[str] = Header(None), db: Session = Depends(get_db)):
        query = db.query(Environment)
        if user_id:
            query = query.filter(Environment.user_id == user_id)
        envs = query.order_by(Environment.created_at, Environment.id).all()
        return [{"id": e.id, "user_id": e.user_id, "name": e.name} for e in envs]

    @app.get("/environments/{env_id}", response_model=EnvOut)
    def get_env(env_id: int, db: Session = Depends(get_db)):
        return _get_env_or_404(db, env_id)

    @app.put("/environments/{env_id}", response_model=EnvOut)
    def update_env(env_id: int, payload: SaveEnv, db: Session = Depends(get_db)):
        env = _get_env_or_404(db, env_id)
        env.name = payload.name
        # The variable set is replaced wholesale, not merged.
        env.variables = _variables_from(payload)
        db.commit()
        db.refresh(env)
        return env

    @app.delete("/environments/{env_id}", status_code=status.HTTP_204_NO_CONTENT)
    def delete_env(env_id: int, db: Session = Depends(get_db)):
        env = _get_env_or_404(db, env_id)
        db.delete(env)
        db.commit()


def _get_env_or_404(db: Session, env_id: int) -> Environment:
    env = db.query(Environment).filter(Environment.id == env_id).first()
    if env is None:
        raise HTTPException(status_code=404, detail=f"Environment {env_id} not found")
    return env


def _variables_from(payload: SaveEnv):
    return [
        EnvironmentVariable(key=v.key, value=v.value, enabled=v.enabled)
        for v in payload.variables
        if v.key
    ]


app = create_app()
