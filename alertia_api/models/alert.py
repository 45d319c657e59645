from alertia_api.common.dates import utcnow
from alertia_api.extensions import db

TIPOS = ("1ra Alerta", "2da Alerta", "Crítica")


class Alert(db.Model):
    __tablename__ = "alertas"

    id             = db.Column(db.String(120), primary_key=True)
    obligacion_id  = db.Column(db.String(120), index=True, nullable=False)
    tipo           = db.Column(db.String(40), nullable=False)
    fecha          = db.Column(db.Date, index=True)
    fecha_calculo  = db.Column(db.DateTime, default=utcnow)
    estado         = db.Column(db.String(20), nullable=False, default="pendiente")  # pendiente | enviada
    fecha_envio    = db.Column(db.DateTime)
    destinatario   = db.Column(db.String(255))
    dias_restantes = db.Column(db.Integer)

    __table_args__ = (
        db.Index("ix_alertas_obl_fecha", "obligacion_id", "fecha"),
    )

    def to_dict(self):
        return {
            "id": self.id,
            "obligacion_id": self.obligacion_id,
            "tipo": self.tipo,
            "fecha": self.fecha.isoformat() if self.fecha else None,
            "fecha_calculo": self.fecha_calculo.isoformat() if self.fecha_calculo else None,
            "estado": self.estado,
            "fecha_envio": self.fecha_envio.isoformat() if self.fecha_envio else None,
            "destinatario": self.destinatario,
            "dias_restantes": self.dias_restantes,
        }
