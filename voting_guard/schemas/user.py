"""
Schémas Pydantic pour les électeurs et administrateurs
"""
from pydantic import BaseModel, EmailStr, Field
from typing import Optional
from datetime import datetime
from voting_guard.models.user import UserRole


class UserBase(BaseModel):
    """Schéma de base utilisateur"""
    email: EmailStr
    nom: str
    prenom: str


class VoterRegister(UserBase):
    """Inscription d'un électeur (le rôle admin n'est pas attribuable ici)"""
    password: str = Field(..., min_length=6)


class UserResponse(UserBase):
    """Réponse utilisateur"""
    id: int
    role: UserRole
    is_active: bool
    is_enrolled: bool
    is_blocked: bool
    created_at: datetime

    class Config:
        from_attributes = True


class Token(BaseModel):
    """Token JWT"""
    access_token: str
    token_type: str = "bearer"


class TokenData(BaseModel):
    """Données du token"""
    user_id: Optional[int] = None
    email: Optional[str] = None
    role: Optional[str] = None
