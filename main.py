from fastapi import FastAPI, HTTPException, Header, Depends, Query, Request, APIRouter
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import UploadFile
from models import init_db, run_migrations
from config import config
from auth import AuthContext, authenticate, get_auth_context
from schemas import parse_team_submission
from storage import PresentationStorage
from service import PresentationUpload
from presentation import PRESENTATION_MAX_FILE_SIZE_BYTES
import service
import os
import json
import traceback
from dotenv import load_dotenv
from typing import Optional

load_dotenv()

app = FastAPI(title="Foundathon Registration API")

JSON_HEADERS = {"Cache-Control": "no-store"}

# Configure CORS - must specify exact origins when credentials are allowed
# In production, set ALLOWED_ORIGINS env var (comma-separated)
env_origins = os.getenv("ALLOWED_ORIGINS")
if env_origins:
    origins = [o.strip() for o in env_origins.split(",")]
else:
    origins = [
        "https://foundathon.thefoundersclub.tech",
        "http://localhost:3000",
    ]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ============================================
# Error responses
# ============================================

def json_error(message, status_code):
    return JSONResponse({"error": message}, status_code=status_code, headers=JSON_HEADERS)

def json_result(result):
    if not result.ok:
        return json_error(result.error, result.status)
    return JSONResponse(result.data, status_code=result.status, headers=JSON_HEADERS)

@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return json_error(detail, exc.status_code)

@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    message = errors[0].get("msg") if errors else "Invalid request."
    return json_error(message, 400)

# ============================================
# Dependencies
# ============================================

_storage = None

def get_storage():
    global _storage
    if _storage is None:
        _storage = PresentationStorage()
    return _storage

def require_user(request: Request) -> AuthContext:
    """Authenticate inside a handler, after request shape checks have passed."""
    return authenticate(request.headers.get("authorization"))

def is_json_request(request: Request) -> bool:
    return "application/json" in (request.headers.get("content-type") or "")

async def parse_request_json(request: Request):
    body = await request.body()
    try:
        return json.loads(body)
    except ValueError:
        return None

async def read_team_body(request: Request):
    """
    Parse a JSON team payload.
    Returns (submission, extra_fields, error_response).
    """
    if not is_json_request(request):
        return None, None, json_error("Content-Type must be application/json.", 415)

    body = await parse_request_json(request)
    if not isinstance(body, dict):
        return None, None, json_error("Invalid JSON payload.", 400)

    extras = {
        "problemStatementId": body.get("problemStatementId"),
        "lockToken": body.get("lockToken"),
    }
    team_fields = {k: v for k, v in body.items() if k not in ("problemStatementId", "lockToken")}
    submission, error = parse_team_submission(team_fields)
    if error:
        return None, None, json_error(error, 400)
    return submission, extras, None

# ============================================
# Admin
# ============================================

API_KEY = os.getenv("ADMIN_API_KEY")

async def verify_api_key(x_api_key: str = Header(None)):
    if not API_KEY:
        raise HTTPException(status_code=500, detail="ADMIN_API_KEY not configured on server")
    if x_api_key != API_KEY:
        raise HTTPException(status_code=403, detail="Invalid API Key")
    return x_api_key

admin_router = APIRouter(prefix="/admin", tags=["admin"])

@admin_router.post("/migrate")
async def manual_migrate(api_key: str = Depends(verify_api_key)):
    print("ADMIN: Triggering manual migration...")
    db = config.database
    if db.url:
        success, msg = run_migrations(db.url)
    else:
        if not db.password:
            raise HTTPException(status_code=500, detail="DB_PASSWORD missing in environment")
        success, msg = run_migrations(None, user=db.user, password=db.password, host=db.host, database=db.name)

    if success:
        return {"status": "success", "message": msg}
    raise HTTPException(status_code=500, detail=msg)

app.include_router(admin_router)

@app.on_event("startup")
async def startup():
    print("STARTUP: Initializing...")

    for problem in config.validate():
        print(f"STARTUP WARNING: {problem}")

    db = config.database
    if db.url:
        init_db(db.url)
    else:
        if not db.password:
            print("STARTUP ERROR: DB_PASSWORD missing")
            raise ValueError("DB_PASSWORD environment variable is required")

        print(f"STARTUP: Connecting to {db.host}...")
        init_db(
            'postgres',
            user=db.user,
            password=db.password,
            host=db.host,
            database=db.name,
            sslmode='require'
        )
    print("STARTUP: Database initialized successfully")

@app.get("/health")
def health():
    return {"status": "ok"}

# ============================================
# Problem statements
# ============================================

@app.get("/api/problem-statements")
def get_problem_statements(context: AuthContext = Depends(get_auth_context)):
    return json_result(service.get_problem_statement_availability())

@app.post("/api/problem-statements/lock")
async def lock_problem_statement(request: Request):
    if not is_json_request(request):
        return json_error("Content-Type must be application/json.", 415)

    body = await parse_request_json(request)
    if not isinstance(body, dict):
        return json_error("Invalid JSON payload.", 400)

    problem_statement_id = body.get("problemStatementId")
    if not isinstance(problem_statement_id, str) or not service.get_problem_statement_by_id(problem_statement_id):
        return json_error(service.STATEMENT_NOT_FOUND, 400)

    context = require_user(request)
    return json_result(service.lock_problem_statement(context.user_id, problem_statement_id.strip()))

# ============================================
# Registration
# ============================================

@app.get("/api/register")
def list_registrations(context: AuthContext = Depends(get_auth_context)):
    return json_result(service.list_teams(context.user_id))

@app.post("/api/register")
async def register_team(request: Request):
    submission, extras, error_response = await read_team_body(request)
    if error_response:
        return error_response

    context = require_user(request)
    return json_result(service.create_team(
        context.user_id,
        context.email,
        submission,
        extras["problemStatementId"],
        extras["lockToken"],
    ))

@app.delete("/api/register")
def delete_registration_by_query(request: Request, id: Optional[str] = Query(None)):
    normalized_id = id.strip() if id else ""
    if not normalized_id:
        return json_error("Team id is required.", 400)
    if not service.is_valid_team_id(normalized_id):
        return json_error(service.TEAM_ID_INVALID, 400)

    context = require_user(request)
    return json_result(service.delete_team_by_query_id(normalized_id, context.user_id))

@app.get("/api/register/{team_id}")
def get_registration(team_id: str, request: Request, storage: PresentationStorage = Depends(get_storage)):
    if not service.is_valid_team_id(team_id):
        return json_error(service.TEAM_ID_INVALID, 400)

    context = require_user(request)
    return json_result(service.get_team(team_id, context.user_id, storage))

@app.patch("/api/register/{team_id}")
async def update_registration(team_id: str, request: Request, storage: PresentationStorage = Depends(get_storage)):
    if not service.is_valid_team_id(team_id):
        return json_error(service.TEAM_ID_INVALID, 400)

    submission, extras, error_response = await read_team_body(request)
    if error_response:
        return error_response

    lock = None
    if extras["problemStatementId"] is not None or extras["lockToken"] is not None:
        if not isinstance(extras["problemStatementId"], str) or not isinstance(extras["lockToken"], str):
            return json_error("Both problemStatementId and lockToken are required to lock a statement.", 400)
        lock = extras

    context = require_user(request)
    return json_result(service.patch_team(team_id, context.user_id, submission, storage, lock=lock))

@app.delete("/api/register/{team_id}")
def delete_registration(team_id: str, request: Request):
    if not service.is_valid_team_id(team_id):
        return json_error(service.TEAM_ID_INVALID, 400)

    context = require_user(request)
    return json_result(service.delete_team(team_id, context.user_id))

@app.post("/api/register/{team_id}/presentation")
async def submit_presentation(team_id: str, request: Request, storage: PresentationStorage = Depends(get_storage)):
    if not service.is_valid_team_id(team_id):
        return json_error(service.TEAM_ID_INVALID, 400)

    context = require_user(request)

    try:
        form = await request.form()
    except Exception:
        return json_error("Invalid form data payload.", 400)

    file = form.get("file")
    if not isinstance(file, UploadFile):
        return json_error("Presentation file is required.", 400)

    # Never buffer more than one byte past the limit; the service rejects oversize files
    try:
        if file.size is not None and file.size > PRESENTATION_MAX_FILE_SIZE_BYTES:
            data = b""
        else:
            data = await file.read(PRESENTATION_MAX_FILE_SIZE_BYTES + 1)
    except Exception as e:
        print(f"ERROR in /api/register/{{team_id}}/presentation: {e}")
        traceback.print_exc()
        return json_error("Failed to read presentation file.", 500)

    upload = PresentationUpload(
        name=file.filename or "",
        size=file.size if file.size is not None else len(data),
        content_type=file.content_type,
        data=data,
    )
    return json_result(service.submit_team_presentation(team_id, context.user_id, upload, storage))

if __name__ == "__main__":
    import uvicorn

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", 8000))
    reload = os.getenv("ENVIRONMENT", "development") == "development"

    print(f"STARTUP: Starting server on {host}:{port}")
    uvicorn.run("main:app", host=host, port=port, reload=reload)
