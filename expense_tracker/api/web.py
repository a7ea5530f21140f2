from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import FileResponse, HTMLResponse
from fastapi.templating import Jinja2Templates
from pathlib import Path
from expense_tracker.core.config import settings

router = APIRouter()
templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent.parent / "templates"))

def static_file(path: str):
    """Return the built asset for `path`, or None when the SPA should handle it."""
    root = Path(settings.STATIC_DIR).resolve()
    if not path or not root.is_dir():
        return None
    candidate = (root / path).resolve()
    if root not in candidate.parents or not candidate.is_file():
        return None
    return candidate

@router.get("/{full_path:path}", response_class=HTMLResponse, include_in_schema=False)
async def spa_fallback(request: Request, full_path: str):
    # Unknown API routes stay JSON 404s; only client routes get the entry document
    if f"/{full_path}".startswith(settings.API_PREFIX + "/") or f"/{full_path}" == settings.API_PREFIX:
        raise HTTPException(status_code=404, detail="Not Found")

    asset = static_file(full_path)
    if asset is not None:
        return FileResponse(asset)

    return templates.TemplateResponse(request, "index.html", {
        "title": settings.PROJECT_NAME,
        "api_prefix": settings.API_PREFIX,
    })
