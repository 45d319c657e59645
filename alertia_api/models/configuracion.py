from alertia_api.common.dates import utcnow
from alertia_api.extensions import db

SINGLETON_ID = "configuracion"


class Configuracion(db.Model):
    __tablename__ = "configuracion"

    id         = db.Column(db.String(40), primary_key=True, default=SINGLETON_ID)
    datos      = db.Column(db.JSON, nullable=False, default=dict)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
