from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from restock.api.endpoints import password_reset, reorder
from restock.core.config import settings
from restock.core.logging import init_sentry, setup_logging
from restock.db.base import Base
from restock.db.session import engine
from restock.middleware.logging import AccessLoggingMiddleware
from restock.helpers.getters import isDebugMode


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="""
## Password reset

Open a flow with `POST /api/password-reset`, then drive it step by step:

1. `POST /api/password-reset/{flow_id}/email` sends a verification code
2. `POST /api/password-reset/{flow_id}/code` checks the code
3. `POST /api/password-reset/{flow_id}/password` sets the new password

Every response carries the flow's current `step` and, when a step failed,
its `error`.

## Reorder reminders

`POST /api/reorder/notifications` lists the products due within the
notification window.
    """,
    version="1.0.0",
    lifespan=lifespan,
)

# Initialize logging and error tracking
setup_logging()
init_sentry()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(AccessLoggingMiddleware, enabled=not isDebugMode())

app.include_router(password_reset.router, prefix="/api/password-reset", tags=["password-reset"])
app.include_router(reorder.router, prefix="/api/reorder", tags=["reorder"])


@app.get("/")
def root():
    return {"message": f"Welcome to the {settings.APP_NAME} API"}


@app.get("/health")
def health():
    return {"status": "ok"}
