# servicebell/api/endpoints/auth.py
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from servicebell import crud
from servicebell.api import deps
from servicebell.core.exceptions import ConflictError, UnauthorizedError
from servicebell.core.security import create_access_token
from servicebell.db.models.user import User, UserRole
from servicebell.schemas.restaurant import RestaurantCreate
from servicebell.schemas.user import UserLogin, UserRead, UserRegister, UserWithToken

logger = logging.getLogger(__name__)

router = APIRouter()


def _with_token(user: User) -> UserWithToken:
    return UserWithToken(
        **UserRead.model_validate(user).model_dump(),
        access_token=create_access_token(user.id),
    )


@router.post("/register", response_model=UserWithToken, status_code=status.HTTP_201_CREATED)
async def register(*, db: AsyncSession = Depends(deps.get_db), user_in: UserRegister) -> Any:
    """
    Cria o dono e o primeiro restaurante dele, já autenticado.
    """
    if await crud.user.get_by_username(db, username=user_in.username):
        raise ConflictError("Username already exists")

    restaurant_name = user_in.restaurant_name or f"{user_in.username}'s restaurant"
    try:
        user = await crud.user.create(
            db, username=user_in.username, password=user_in.password, email=user_in.email, role=UserRole.OWNER
        )
        await crud.restaurant.create(db, obj_in=RestaurantCreate(name=restaurant_name), owner_id=user.id)
        await db.commit()
    except IntegrityError:
        # Cadastro simultâneo com o mesmo nome passou pela checagem acima
        await db.rollback()
        raise ConflictError("Username already exists")
    logger.info("Novo dono cadastrado: %s", user.username)
    return _with_token(user)


@router.post("/login", response_model=UserWithToken)
async def login(*, db: AsyncSession = Depends(deps.get_db), credentials: UserLogin) -> Any:
    user = await crud.user.authenticate(db, username=credentials.username, password=credentials.password)
    if not user:
        logger.warning("Tentativa de login inválida para %s", credentials.username)
        raise UnauthorizedError("Invalid username or password")
    logger.info("Usuário %s autenticado", user.username)
    return _with_token(user)


@router.post("/logout")
async def logout(current_user: User = Depends(deps.get_current_user)) -> Any:
    """
    Tokens são stateless: o cliente apenas descarta o seu.
    """
    logger.info("Usuário %s saiu", current_user.username)
    return {"message": "Logged out"}


@router.get("/user", response_model=Optional[UserRead])
async def read_current_user(current_user: Optional[User] = Depends(deps.get_optional_user)) -> Any:
    return current_user
