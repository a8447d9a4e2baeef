"""HTTP gateway: accounts, catalog and browser sessions."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import CookiePolicy, DEFAULT_CORS_ORIGINS
from .database import Database
from .models import Account
from .security import BearerIdentity, IdentityTokens
from .sessions import SESSION_COOKIE_NAME, SessionManager

logger = logging.getLogger("gamehub.api")

GENERIC_ERROR = "Unexpected error occurred."
INVALID_CREDENTIALS = "Invalid credentials."


class RegisterRequest(BaseModel):
    username: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class UserSummary(BaseModel):
    id: str
    username: str
    email: str


class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserSummary


class GameCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = None
    description: Optional[str] = None
    genre: Optional[str] = None
    image: Optional[str] = None
    download_link: Optional[str] = Field(default=None, alias="downloadLink")


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(default=None, alias="userId")
    username: Optional[str] = None


def _user_summary(account: Account) -> UserSummary:
    return UserSummary(**account.summary())


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request."
    first = errors[0]
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = str(first.get("msg", "Invalid request."))
    return f"{location}: {message}" if location else message


def create_app(
    *,
    database: Database,
    tokens: IdentityTokens,
    sessions: Optional[SessionManager] = None,
    cookie_policy: Optional[CookiePolicy] = None,
    cors_origins: Sequence[str] = DEFAULT_CORS_ORIGINS,
) -> FastAPI:
    """Create the HTTP gateway application."""

    if sessions is None:
        sessions = SessionManager()
    if cookie_policy is None:
        cookie_policy = CookiePolicy(same_site="lax", secure=False)

    app = FastAPI(
        title="GameHub API",
        description="Game catalog, accounts and chat sessions",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )
    app.state.database = database
    app.state.tokens = tokens
    app.state.sessions = sessions

    bearer = BearerIdentity(tokens)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(_: Request, exc: StarletteHTTPException) -> JSONResponse:
        return _error(exc.status_code, str(exc.detail))

    @app.exception_handler(RequestValidationError)
    async def _validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        return _error(status.HTTP_400_BAD_REQUEST, _validation_message(exc))

    @app.exception_handler(PyMongoError)
    async def _storage_error(request: Request, exc: PyMongoError) -> JSONResponse:
        logger.exception("Storage failure while handling %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR)

    def get_db() -> Database:
        return database

    def _issue_session_cookie(response: Response, token: str) -> None:
        response.set_cookie(
            SESSION_COOKIE_NAME,
            token,
            max_age=sessions.cookie_max_age,
            httponly=True,
            secure=cookie_policy.secure,
            samesite=cookie_policy.same_site,
            path="/",
        )

    def _clear_session_cookie(response: Response) -> None:
        response.delete_cookie(
            SESSION_COOKIE_NAME,
            path="/",
            httponly=True,
            secure=cookie_policy.secure,
            samesite=cookie_policy.same_site,
        )

    @app.get("/api/health")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------
    @app.post("/api/auth/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
    def register(payload: RegisterRequest, db: Database = Depends(get_db)) -> AuthResponse:
        username = (payload.username or "").strip()
        email = (payload.email or "").strip()
        if not username or not email or not payload.password:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="All fields are required.")

        try:
            account = db.accounts.create(username, email, payload.password)
        except ValueError as exc:
            logger.warning("Registration rejected for %s: %s", email, exc)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        logger.info("Registered account %s (%s)", account.id, account.username)
        return AuthResponse(
            message="User registered successfully.",
            token=tokens.issue(account.id),
            user=_user_summary(account),
        )

    @app.post("/api/auth/login", response_model=AuthResponse)
    def login(payload: LoginRequest, db: Database = Depends(get_db)) -> AuthResponse:
        if not payload.email or not payload.password:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email and password are required.",
            )

        account = db.accounts.authenticate(payload.email, payload.password)
        if account is None:
            logger.warning("Failed login attempt for %s", payload.email.strip().lower())
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_CREDENTIALS)

        logger.info("Account %s signed in", account.id)
        return AuthResponse(
            message="Login successful.",
            token=tokens.issue(account.id),
            user=_user_summary(account),
        )

    @app.get("/api/auth/me")
    def read_current_user(
        account_id: str = Depends(bearer),
        db: Database = Depends(get_db),
    ) -> Dict[str, UserSummary]:
        account = db.accounts.get(account_id)
        if account is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Account no longer exists.")
        return {"user": _user_summary(account)}

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------
    @app.get("/api/games")
    def search_games(search: str = "", db: Database = Depends(get_db)) -> List[Dict[str, Optional[str]]]:
        return [entry.to_dict() for entry in db.games.search(search)]

    @app.post("/api/games", status_code=status.HTTP_201_CREATED)
    def create_game(payload: GameCreateRequest, db: Database = Depends(get_db)) -> Dict[str, Optional[str]]:
        try:
            entry = db.games.create(
                payload.title or "",
                description=payload.description,
                genre=payload.genre,
                image=payload.image,
                download_link=payload.download_link,
            )
        except ValueError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

        logger.info("Catalog entry %s created: %s", entry.id, entry.title)
        return entry.to_dict()

    # ------------------------------------------------------------------
    # Browser sessions
    # ------------------------------------------------------------------
    @app.post("/api/create-session")
    def create_session(payload: CreateSessionRequest, response: Response) -> Dict[str, Any]:
        user_id = (payload.user_id or "").strip()
        username = (payload.username or "").strip()
        if not user_id or not username:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="userId and username are required.",
            )

        token = sessions.create(user_id, username)
        _issue_session_cookie(response, token)
        logger.info("Session created for user %s", user_id)
        return {"message": "Session created.", "sessionId": token}

    @app.get("/api/session-status")
    def session_status(request: Request) -> Dict[str, Any]:
        identity = sessions.resolve(request.cookies.get(SESSION_COOKIE_NAME))
        if identity is None:
            return {"loggedIn": False}
        return {"loggedIn": True, "userId": identity.user_id, "username": identity.username}

    @app.post("/api/heartbeat")
    def heartbeat(request: Request, response: Response) -> Dict[str, str]:
        identity = sessions.resolve(request.cookies.get(SESSION_COOKIE_NAME), refresh=True)
        if identity is None:
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No active session.")

        _issue_session_cookie(response, identity.session_id)
        return {"lastActivity": identity.last_activity.isoformat()}

    @app.post("/api/logout")
    def logout(request: Request, response: Response) -> Dict[str, str]:
        token = request.cookies.get(SESSION_COOKIE_NAME)
        sessions.destroy(token)
        _clear_session_cookie(response)
        return {"message": "Logged out."}

    return app


__all__ = ["create_app"]
