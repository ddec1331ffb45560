"""
Service d'authentification des électeurs et administrateurs
"""
from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
import logging

from voting_guard.config import settings
from voting_guard.models.user import User, UserRole
from voting_guard.schemas.user import TokenData

logger = logging.getLogger(__name__)

# Contexte de hachage des mots de passe
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Vérifier un mot de passe"""
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    """Hasher un mot de passe"""
    return pwd_context.hash(password)


def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Créer un token JWT pour un utilisateur"""
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user.id),
        "email": user.email,
        "role": user.role.value,
        "exp": expire,
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[TokenData]:
    """Décoder un token JWT"""
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
        # sub est encodé en string dans le JWT
        user_id_raw = payload.get("sub")
        if user_id_raw is None:
            return None
        return TokenData(
            user_id=int(user_id_raw),
            email=payload.get("email"),
            role=payload.get("role")
        )
    except JWTError as e:
        logger.warning(f"JWT invalide: {e}")
        return None
    except (ValueError, TypeError) as e:
        logger.warning(f"Token mal formé: {e}")
        return None


async def authenticate_user(db: AsyncSession, email: str, password: str) -> Optional[User]:
    """Authentifier un utilisateur"""
    user = await get_user_by_email(db, email)
    if not user or not user.is_active:
        return None
    if not verify_password(password, user.hashed_password):
        return None
    return user


async def get_user_by_id(db: AsyncSession, user_id: int) -> Optional[User]:
    """Récupérer un utilisateur par ID"""
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> Optional[User]:
    """Récupérer un utilisateur par email"""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalar_one_or_none()


async def create_user(
    db: AsyncSession,
    email: str,
    password: str,
    nom: str,
    prenom: str,
    role: UserRole = UserRole.VOTER
) -> User:
    """Créer un nouvel utilisateur"""
    user = User(
        email=email,
        hashed_password=get_password_hash(password),
        nom=nom,
        prenom=prenom,
        role=role
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info(f"Utilisateur créé: {email} ({role.value})")
    return user
