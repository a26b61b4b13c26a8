"""
Auth API routes - PropDesk back-office
Login / logout against the remote API and the current-user check.
"""
from fastapi import APIRouter, HTTPException, Depends
from pydantic import BaseModel

from propdesk.backoffice import BackOffice, get_backoffice
from propdesk.clients.api_client import ApiError, AuthenticationError

router = APIRouter(prefix="/auth", tags=["auth"])

LOGIN_PATH = "/login"


class LoginRequest(BaseModel):
    phone: str
    password: str


class LoginResponse(BaseModel):
    token: str
    user: dict


def require_session(backoffice: BackOffice = Depends(get_backoffice)) -> BackOffice:
    """Dependency: every screen needs a logged-in operator."""
    if not backoffice.session.is_authenticated:
        raise HTTPException(
            status_code=401,
            detail={"message": "Not authenticated", "redirect": LOGIN_PATH},
        )
    return backoffice


@router.post("/login", response_model=LoginResponse)
async def login(req: LoginRequest, backoffice: BackOffice = Depends(get_backoffice)):
    """Authenticate with the API and keep the returned token for later calls."""
    try:
        user, token = await backoffice.api.login(req.phone, req.password)
    except ApiError as e:
        raise HTTPException(status_code=e.status_code or 401, detail=e.message or "Login failed")

    backoffice.session.populate(user, token)
    return LoginResponse(token=token, user=user.to_wire())


@router.post("/logout")
async def logout(backoffice: BackOffice = Depends(get_backoffice)):
    backoffice.session.clear()
    return {"success": True, "redirect": LOGIN_PATH}


@router.get("/me")
async def get_me(backoffice: BackOffice = Depends(require_session)):
    """Return the logged-in user as the API currently reports it."""
    try:
        profile = await backoffice.api.get_profile()
    except AuthenticationError as e:
        raise HTTPException(status_code=401, detail={"message": e.message, "redirect": LOGIN_PATH})
    except ApiError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return (profile or backoffice.session.user).to_wire()
