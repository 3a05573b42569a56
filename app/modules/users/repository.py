# app/modules/users/repository.py
from sqlalchemy.orm import Session, selectinload
from sqlalchemy import func, or_
from typing import Any, Dict, List, Optional, Tuple
from datetime import datetime

from app.shared.database.models import User

# Campos únicos de usuario, en el orden en que se reportan los conflictos
UNIQUE_FIELDS = ("correo", "username", "dni", "numero_empleado")

class UsersRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(self, user_data: Dict[str, Any]) -> User:
        user = User(**user_data)
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def get_by_id(self, user_id: int) -> Optional[User]:
        return self.db.query(User).options(
            selectinload(User.user_locations)
        ).filter(User.id == user_id).first()

    def find_conflicts(self, values: Dict[str, Any], exclude_id: Optional[int] = None) -> List[str]:
        """Campos únicos cuyo valor ya usa otro usuario"""
        conditions = [
            getattr(User, field) == values[field]
            for field in UNIQUE_FIELDS
            if values.get(field) is not None
        ]
        if not conditions:
            return []

        query = self.db.query(User).filter(or_(*conditions))
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)

        conflicts = []
        for user in query.all():
            for field in UNIQUE_FIELDS:
                if values.get(field) is not None and getattr(user, field) == values[field] and field not in conflicts:
                    conflicts.append(field)
        return [field for field in UNIQUE_FIELDS if field in conflicts]

    def list_paginated(self, page: int, limit: int, role: Optional[str] = None) -> Tuple[List[User], int]:
        query = self.db.query(User)
        if role:
            query = query.filter(User.role == role)

        total = query.count()
        items = query.options(selectinload(User.user_locations)).order_by(
            User.created_at.desc(), User.id.desc()
        ).offset((page - 1) * limit).limit(limit).all()
        return items, total

    def update(self, user: User, update_data: Dict[str, Any]) -> User:
        for key, value in update_data.items():
            setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    # ===== ESTADÍSTICAS =====

    def count_active(self) -> int:
        return self.db.query(func.count(User.id)).filter(User.is_active == True).scalar() or 0

    def count_active_logged_since(self, since: datetime) -> int:
        return self.db.query(func.count(User.id)).filter(
            User.is_active == True,
            User.last_login >= since
        ).scalar() or 0

    def count_active_by_role(self) -> Dict[str, int]:
        rows = self.db.query(User.role, func.count(User.id)).filter(
            User.is_active == True
        ).group_by(User.role).all()
        return {role: count for role, count in rows}
