from alertia_api.common.dates import utcnow
from alertia_api.extensions import db


class Envio(db.Model):
    """One batch dispatch of alert emails (manual or scheduled)."""
    __tablename__ = "envios"

    id               = db.Column(db.String(120), primary_key=True)
    fecha            = db.Column(db.DateTime, default=utcnow, index=True)
    tipo             = db.Column(db.String(20), nullable=False, default="manual")  # manual | automatico
    usuario          = db.Column(db.String(255))
    usuario_email    = db.Column(db.String(255))
    correos_enviados = db.Column(db.Integer, nullable=False, default=0)
    fallidos         = db.Column(db.Integer, nullable=False, default=0)
    alertas          = db.Column(db.JSON, nullable=False, default=list)
    errores          = db.Column(db.JSON, nullable=False, default=list)
    estado           = db.Column(db.String(20), nullable=False, default="completado")
    remitente        = db.Column(db.String(255))
    nombre_remitente = db.Column(db.String(255))
    cc_global        = db.Column(db.JSON, nullable=False, default=list)

    def to_dict(self):
        return {
            "id": self.id,
            "fecha": self.fecha.isoformat() if self.fecha else None,
            "tipo": self.tipo,
            "usuario": self.usuario,
            "usuario_email": self.usuario_email,
            "correos_enviados": self.correos_enviados,
            "fallidos": self.fallidos,
            "alertas": list(self.alertas or []),
            "errores": list(self.errores or []),
            "estado": self.estado,
            "remitente": self.remitente,
            "nombre_remitente": self.nombre_remitente,
            "cc_global": list(self.cc_global or []),
        }
