from functools import lru_cache
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer

from src.adapters.channels import ChannelHub
from src.api.auth_utils import token_subject
from src.app_shell.config import AppConfig, load_config
from src.components.exports import ERROR_STATUS
from src.domain.entities import User
from src.rules.loader import load_rules
from src.rules.models import Rules
from src.ui.context import ServiceContext


# --- Settings ---
@lru_cache
def get_settings() -> AppConfig:
    return load_config()


# --- Rules ---
@lru_cache
def get_rules() -> Rules:
    return load_rules(get_settings().rules_path)


# --- Push channels (one hub per process) ---
@lru_cache
def get_channel_hub() -> ChannelHub:
    return ChannelHub()


# --- Service context ---
@lru_cache
def get_context() -> ServiceContext:
    settings = get_settings()
    return ServiceContext.create(
        db_path=settings.db_path,
        fs_path=settings.files_dir,
        rules=get_rules(),
        hub=get_channel_hub(),
    )


# --- Auth ---
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token", auto_error=False)


async def get_current_user(
    request: Request,
    token: Annotated[str | None, Depends(oauth2_scheme)],
    ctx: ServiceContext = Depends(get_context),
) -> User:
    # Cookie (HttpOnly) takes precedence over the Authorization header
    cookie_token = request.cookies.get("access_token")
    if cookie_token and cookie_token.startswith("Bearer "):
        token = cookie_token.split(" ")[1]

    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user_id = token_subject(token)
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user = ctx.user_repo.get_by_id(user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found",
        )

    return user


# --- Errors ---
def raise_for_errors(errors: list) -> None:
    """Map the first component error to an HTTPException."""
    if not errors:
        return
    first = errors[0]
    raise HTTPException(
        status_code=ERROR_STATUS.get(first.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": first.code, "message": first.message},
    )
