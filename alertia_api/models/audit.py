from alertia_api.common.dates import utcnow
from alertia_api.extensions import db


class AuditEvent(db.Model):
    __tablename__ = "auditoria"

    id            = db.Column(db.String(120), primary_key=True)
    fecha         = db.Column(db.DateTime, default=utcnow, index=True)
    usuario       = db.Column(db.String(255), index=True)
    usuario_email = db.Column(db.String(255))
    accion        = db.Column(db.String(255), nullable=False)
    contexto      = db.Column(db.JSON, nullable=False, default=dict)
    ip            = db.Column(db.String(64))

    def to_dict(self):
        return {
            "id": self.id,
            "fecha": self.fecha.isoformat() if self.fecha else None,
            "usuario": self.usuario,
            "usuario_email": self.usuario_email,
            "accion": self.accion,
            "contexto": dict(self.contexto or {}),
            "ip": self.ip,
        }
