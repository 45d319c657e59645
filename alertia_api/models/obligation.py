import copy
from alertia_api.extensions import db
from alertia_api.common.dates import parse_fecha, parse_timestamp, utcnow


class Obligation(db.Model):
    """
    A regulatory obligation. Known fields are columns; anything else a client
    sends is kept in `datos_extra` so records survive a round trip unchanged.
    """
    __tablename__ = "obligaciones"

    id                     = db.Column(db.String(120), primary_key=True)
    id_oficial             = db.Column(db.String(120), index=True)
    regulador              = db.Column(db.String(255))
    area                   = db.Column(db.String(255), index=True)
    nombre                 = db.Column(db.Text)
    descripcion            = db.Column(db.Text)
    periodicidad           = db.Column(db.String(120))
    responsable            = db.Column(db.String(255))
    responsable_email      = db.Column(db.String(255))
    responsable_cn         = db.Column(db.String(255))
    responsable_juridico   = db.Column(db.String(255))
    fecha_limite           = db.Column(db.Date, index=True)
    estatus                = db.Column(db.String(60), index=True)
    sub_estatus            = db.Column(db.String(120))
    dias_para_vencer_excel = db.Column(db.Integer)
    motivo_pausa           = db.Column(db.Text)
    fecha_pausa            = db.Column(db.DateTime)
    fecha_atendida         = db.Column(db.DateTime)

    reglas_alertamiento      = db.Column(db.JSON, nullable=False, default=dict)
    alertas                  = db.Column(db.JSON, nullable=False, default=dict)
    archivos                 = db.Column(db.JSON, nullable=False, default=list)
    historial                = db.Column(db.JSON, nullable=False, default=list)
    recordatorios_programados = db.Column(db.JSON, nullable=False, default=list)
    datos_extra              = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    _SCALARS = (
        "id_oficial", "regulador", "area", "nombre", "descripcion", "periodicidad",
        "responsable", "responsable_email", "responsable_cn", "responsable_juridico",
        "estatus", "sub_estatus", "motivo_pausa",
    )
    _JSON = ("reglas_alertamiento", "alertas", "archivos", "historial", "recordatorios_programados")
    _DATETIMES = ("fecha_pausa", "fecha_atendida")
    _SKIP = ("id", "created_at", "updated_at", "datos_extra")

    def apply(self, data: dict):
        """Copy a client dict onto the row (partial update)."""
        extra = dict(self.datos_extra or {})
        for k, v in data.items():
            if k in self._SKIP:
                continue
            if k in self._SCALARS:
                setattr(self, k, v)
            elif k in self._JSON:
                setattr(self, k, v if v is not None else ({} if k in ("reglas_alertamiento", "alertas") else []))
            elif k == "fecha_limite":
                self.fecha_limite = parse_fecha(v)
            elif k in self._DATETIMES:
                setattr(self, k, parse_timestamp(v))
            elif k == "dias_para_vencer_excel":
                self.dias_para_vencer_excel = int(v) if v not in (None, "") else None
            else:
                extra[k] = v
        self.datos_extra = extra
        return self

    def to_dict(self):
        d = copy.deepcopy(self.datos_extra or {})
        d.update({
            "id": self.id,
            "fecha_limite": self.fecha_limite.isoformat() if self.fecha_limite else None,
            "dias_para_vencer_excel": self.dias_para_vencer_excel,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        })
        for k in self._SCALARS:
            d[k] = getattr(self, k)
        for k in self._DATETIMES:
            v = getattr(self, k)
            d[k] = v.isoformat() if v else None
        d["reglas_alertamiento"] = copy.deepcopy(self.reglas_alertamiento or {})
        d["alertas"] = copy.deepcopy(self.alertas or {})
        d["archivos"] = copy.deepcopy(self.archivos or [])
        d["historial"] = copy.deepcopy(self.historial or [])
        d["recordatorios_programados"] = copy.deepcopy(self.recordatorios_programados or [])
        return d
