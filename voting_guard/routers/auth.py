"""
Routes d'authentification et d'enrôlement facial
"""
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from voting_guard.database import get_db
from voting_guard.schemas.user import VoterRegister, UserResponse, Token
from voting_guard.schemas.security import FaceEnrollRequest
from voting_guard.services.auth_service import (
    authenticate_user, create_access_token, decode_access_token,
    get_user_by_id, get_user_by_email, create_user
)
from voting_guard.services.profile_service import profile_service
from voting_guard.models.user import User, UserRole
from voting_guard.models.security_log import SecurityLog, LogType

router = APIRouter(prefix="/auth", tags=["Authentification"])

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/token")


async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db)
) -> User:
    """Récupérer l'utilisateur courant à partir du token"""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Token invalide",
        headers={"WWW-Authenticate": "Bearer"},
    )

    token_data = decode_access_token(token)
    if token_data is None:
        raise credentials_exception

    user = await get_user_by_id(db, token_data.user_id)
    if user is None or not user.is_active:
        raise credentials_exception

    return user


async def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Vérifier que l'utilisateur est un admin"""
    if current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Accès réservé aux administrateurs"
        )
    return current_user


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
async def register(user_data: VoterRegister, db: AsyncSession = Depends(get_db)):
    """Inscription d'un nouvel électeur"""
    existing = await get_user_by_email(db, user_data.email)
    if existing:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Cet email est déjà utilisé"
        )

    return await create_user(
        db,
        email=user_data.email,
        password=user_data.password,
        nom=user_data.nom,
        prenom=user_data.prenom,
        role=UserRole.VOTER
    )


@router.post("/token", response_model=Token)
async def login_for_token(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(get_db)
):
    """Connexion et obtention du token"""
    ip_address = request.client.host if request.client else None
    user = await authenticate_user(db, form_data.username, form_data.password)
    if not user:
        db.add(SecurityLog(
            log_type=LogType.LOGIN_FAILED,
            message=f"Échec de connexion pour {form_data.username}",
            ip_address=ip_address
        ))
        await db.commit()
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Email ou mot de passe incorrect",
            headers={"WWW-Authenticate": "Bearer"},
        )

    db.add(SecurityLog(
        user_id=user.id,
        log_type=LogType.LOGIN_SUCCESS,
        ip_address=ip_address
    ))
    await db.commit()

    return {"access_token": create_access_token(user), "token_type": "bearer"}


@router.post("/enroll-face", response_model=dict)
async def enroll_face(
    data: FaceEnrollRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    """Enrôlement du profil facial de l'électeur connecté"""
    success, message = await profile_service.enroll_user(
        db,
        current_user.id,
        data.images_base64
    )

    if not success:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=message
        )

    return {"success": True, "message": message}


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: User = Depends(get_current_user)):
    """Récupérer les informations de l'utilisateur connecté"""
    return current_user
