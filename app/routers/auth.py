from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlmodel import Session

from app.core.database import get_session
from app.core.errors import error_response
from app.core.rate_limit import (
    AUTH_RATE_LIMIT,
    PASSWORD_RATE_LIMIT,
    build_flow_limiters,
    get_flow_storage,
    limiter,
)
from app.core.result import Err, Result
from app.schemas.auth import (
    ActionResponse,
    EmailRequest,
    LoginRequest,
    NewPasswordRequest,
    RegisterRequest,
    Token,
    TokenRequest,
)
from app.services.account_flows import AccountFlows
from app.services.email_service import EmailNotifier, Notifier
from app.services.token_store import SQLTokenStore
from app.services.tokens import TokenIssuer
from app.services.users import UserService
from app.services.verification import TokenVerifier

router = APIRouter(prefix="/auth", tags=["Auth"])


def get_notifier() -> Notifier:
    return EmailNotifier()


def get_flow_limiters():
    return build_flow_limiters(get_flow_storage())


def get_account_flows(
    session: Session = Depends(get_session),
    notifier: Notifier = Depends(get_notifier),
    limiters=Depends(get_flow_limiters),
) -> AccountFlows:
    store = SQLTokenStore(session)
    users = UserService(session)
    return AccountFlows(
        users=users,
        issuer=TokenIssuer(store),
        verifier=TokenVerifier(store, users),
        notifier=notifier,
        limiters=limiters,
    )


def _respond(request: Request, result: Result[str], status_code: int = status.HTTP_200_OK) -> JSONResponse:
    if isinstance(result, Err):
        return error_response(request, result)
    return JSONResponse(status_code=status_code, content={"success": result.value})


@router.post("/register", response_model=ActionResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(AUTH_RATE_LIMIT)
def register(request: Request, payload: RegisterRequest, flows: AccountFlows = Depends(get_account_flows)):
    """
    Register a patient or doctor

    The account stays unverified until the emailed code is confirmed.
    """
    result = flows.register(
        name=payload.name,
        email=payload.email,
        password=payload.password,
        role=payload.role,
    )
    return _respond(request, result, status.HTTP_201_CREATED)


@router.post("/login", response_model=Token)
@limiter.limit(AUTH_RATE_LIMIT)
def login(request: Request, payload: LoginRequest, flows: AccountFlows = Depends(get_account_flows)):
    """Log in with email and password; unverified accounts receive a new code"""
    result = flows.login(payload.email, payload.password)
    if isinstance(result, Err):
        return error_response(request, result)
    return Token(**result.value)


@router.post("/verification", response_model=ActionResponse)
@limiter.limit(AUTH_RATE_LIMIT)
def request_verification(request: Request, payload: EmailRequest, flows: AccountFlows = Depends(get_account_flows)):
    """Send (or re-send) the email verification code"""
    return _respond(request, flows.request_email_verification(payload.email))


@router.post("/verify-email", response_model=ActionResponse)
def verify_email(request: Request, payload: TokenRequest, flows: AccountFlows = Depends(get_account_flows)):
    return _respond(request, flows.confirm_email(payload.token))


@router.post("/reset-password", response_model=ActionResponse)
@limiter.limit(PASSWORD_RATE_LIMIT)
def reset_password(request: Request, payload: EmailRequest, flows: AccountFlows = Depends(get_account_flows)):
    """Email a password reset code"""
    return _respond(request, flows.request_password_reset(payload.email))


@router.post("/new-password", response_model=ActionResponse)
@limiter.limit(PASSWORD_RATE_LIMIT)
def new_password(request: Request, payload: NewPasswordRequest, flows: AccountFlows = Depends(get_account_flows)):
    """Set a new password using a reset code"""
    return _respond(request, flows.confirm_new_password(payload.token, payload.password))


@router.post("/doctor-approval", response_model=ActionResponse)
def approve_doctor(request: Request, payload: EmailRequest, flows: AccountFlows = Depends(get_account_flows)):
    """Approve a therapist application and email the registration code"""
    return _respond(request, flows.approve_doctor(payload.email))


@router.post("/doctor-verification", response_model=ActionResponse)
def verify_doctor(request: Request, payload: TokenRequest, flows: AccountFlows = Depends(get_account_flows)):
    return _respond(request, flows.confirm_doctor_registration(payload.token))
