"""
Script para crear las tablas y los usuarios de prueba
"""
from app.config.database import SessionLocal, engine
from app.core.auth.service import AuthService
from app.shared.database.models import Base, User, UserLocation, Role
from app.shared.timezone import utc_now

TEST_USERS = [
    {"username": "admin", "password": "admin123", "nombre": "Ana", "apellido": "Administradora", "role": Role.ADMIN},
    {"username": "useradmin", "password": "useradmin123", "nombre": "Carlos", "apellido": "Supervisor", "role": Role.USER_ADMIN},
    {"username": "mercado", "password": "mercado123", "nombre": "Pedro", "apellido": "Mercados", "role": Role.MARKET},
    {"username": "cajero1", "password": "cajero123", "nombre": "Juan", "apellido": "Pérez", "role": Role.USER},
]

def create_test_users():
    """Crear usuarios de prueba para cada rol"""
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()

    try:
        creados = 0
        for data in TEST_USERS:
            if db.query(User).filter(User.username == data["username"]).first():
                print(f"Usuario {data['username']} ya existe")
                continue

            user = User(
                username=data["username"],
                correo=f"{data['username']}@mercados.hn",
                nombre=data["nombre"],
                apellido=data["apellido"],
                password_hash=AuthService.hash_password(data["password"]),
                role=data["role"].value,
                is_active=True
            )
            db.add(user)
            db.flush()

            if data["role"] == Role.USER:
                db.add(UserLocation(
                    user_id=user.id,
                    location_name="Mercado Zonal Belén",
                    is_active=True,
                    assigned_at=utc_now()
                ))
            creados += 1

        db.commit()
        print(f"{creados} usuarios creados")
        for data in TEST_USERS:
            print(f"   {data['role'].value:12} | {data['username']:12} | {data['password']}")
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()

if __name__ == "__main__":
    create_test_users()
