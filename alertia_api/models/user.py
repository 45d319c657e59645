from alertia_api.common.dates import utcnow
from alertia_api.extensions import db
from werkzeug.security import generate_password_hash, check_password_hash

ROLES = ("admin", "area", "cn", "juridico")


class User(db.Model):
    __tablename__ = "users"

    id            = db.Column(db.Integer, primary_key=True)
    username      = db.Column(db.String(80), unique=True, index=True, nullable=False)
    email         = db.Column(db.String(255), unique=True, index=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    full_name     = db.Column(db.String(255), nullable=False)
    role          = db.Column(db.String(20), nullable=False, default="area")
    area          = db.Column(db.String(120))
    active        = db.Column(db.Boolean, nullable=False, default=True)
    last_login_at = db.Column(db.DateTime)
    created_at    = db.Column(db.DateTime, default=utcnow)

    # --- helpers ---
    def set_password(self, raw: str):
        self.password_hash = generate_password_hash(raw)

    def check_password(self, raw: str) -> bool:
        return check_password_hash(self.password_hash, raw)

    def to_dict(self):
        return {
            "id": self.id,
            "usuario": self.username,
            "nombre": self.full_name,
            "email": self.email,
            "rol": self.role,
            "area": self.area,
            "activo": self.active,
            "ultimo_acceso": self.last_login_at.isoformat() if self.last_login_at else None,
        }


class TokenBlocklist(db.Model):
    __tablename__ = "token_blocklist"

    id         = db.Column(db.Integer, primary_key=True)
    jti        = db.Column(db.String(64), unique=True, index=True, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)
