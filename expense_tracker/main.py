from fastapi import FastAPI
import logging
from expense_tracker.core.config import settings
from expense_tracker.core.middleware import PathScopedCORSMiddleware, RequestTimingMiddleware
from expense_tracker.api import expenses, health, upload, web

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.PROJECT_NAME)

# Added last runs first: timing wraps CORS so preflights are logged too
app.add_middleware(
    PathScopedCORSMiddleware,
    path_prefix=settings.API_PREFIX,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
    allow_credentials=True,
)
app.add_middleware(RequestTimingMiddleware)

# Include routers
app.include_router(health.router)
app.include_router(expenses.router)
app.include_router(upload.router)
# SPA fallback must stay last, it matches every GET path
app.include_router(web.router)

@app.on_event("startup")
async def startup_event():
    logger.info(f"{settings.PROJECT_NAME} started (storage backend: {settings.STORAGE_BACKEND})")

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT)
