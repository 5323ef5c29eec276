from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from db.database import create_db_and_tables
from routers.inventory import router as inventory_router
from routers.transfers import router as transfers_router
from routers.sales import router as sales_router
from routers.roles import router as roles_router
from routers.permissions import router as permissions_router
from core.auth import fastapi_users, auth_backend
from core.config import settings
from core.logging_setup import setup_logging
from contextlib import asynccontextmanager
from schemas.users import UserRead, UserCreate, UserUpdate

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await create_db_and_tables()
    yield


app = FastAPI(
    title="Retail Inventory API",
    description="API for multi-store stock, transfers and sales",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_reset_password_router(), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_verify_router(UserRead), prefix="/auth", tags=["auth"])
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

# Stock ledger routes
app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
app.include_router(transfers_router, prefix="/transfers", tags=["transfers"])
app.include_router(sales_router, prefix="/sales", tags=["sales"])

# Access control routes
app.include_router(roles_router, prefix="/roles", tags=["roles"])
app.include_router(permissions_router, prefix="/permissions", tags=["permissions"])

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
