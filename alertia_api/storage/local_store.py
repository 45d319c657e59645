# alertia_api/storage/local_store.py
from __future__ import annotations

import logging
from datetime import datetime

from alertia_api.extensions import db
from alertia_api.common.dates import parse_fecha, parse_timestamp, utcnow
from alertia_api.common.ids import new_id
from alertia_api.models.obligation import Obligation
from alertia_api.models.alert import Alert
from alertia_api.models.envio import Envio
from alertia_api.models.audit import AuditEvent
from alertia_api.models.configuracion import Configuracion, SINGLETON_ID

log = logging.getLogger(__name__)


def _dt(v):
    dt = parse_timestamp(v)
    if dt is None:
        d = parse_fecha(v)
        dt = datetime(d.year, d.month, d.day) if d else None
    return dt


class LocalStore:
    """Relational backend used in local mode (Flask-SQLAlchemy session)."""

    # ---------- obligaciones ----------
    def get_obligaciones(self, filters: dict | None = None) -> list[dict]:
        filters = filters or {}
        q = Obligation.query
        if filters.get("area"):
            q = q.filter(Obligation.area == filters["area"])
        if filters.get("estatus"):
            q = q.filter(Obligation.estatus == filters["estatus"])
        return [o.to_dict() for o in q.order_by(Obligation.fecha_limite.asc(), Obligation.id.asc()).all()]

    def get_obligacion(self, obligacion_id: str) -> dict | None:
        o = db.session.get(Obligation, obligacion_id)
        return o.to_dict() if o else None

    def save_obligacion(self, data: dict) -> dict:
        oid = data.get("id") or new_id("OBL")
        o = db.session.get(Obligation, oid)
        if o is None:
            o = Obligation(id=oid)
            db.session.add(o)
        o.apply(data)
        o.updated_at = utcnow()
        db.session.commit()
        return o.to_dict()

    def save_all_obligaciones(self, rows: list[dict]) -> int:
        n = 0
        for data in rows:
            oid = data.get("id") or new_id("OBL")
            o = db.session.get(Obligation, oid)
            if o is None:
                o = Obligation(id=oid)
                db.session.add(o)
            o.apply(data)
            n += 1
        db.session.commit()
        return n

    def update_obligacion_estado(self, obligacion_id: str, estatus: str, extra: dict | None = None) -> dict | None:
        o = db.session.get(Obligation, obligacion_id)
        if o is None:
            return None
        o.apply({**(extra or {}), "estatus": estatus})
        o.updated_at = utcnow()
        db.session.commit()
        return o.to_dict()

    def delete_obligacion(self, obligacion_id: str) -> bool:
        o = db.session.get(Obligation, obligacion_id)
        if o is None:
            return False
        db.session.delete(o)
        db.session.commit()
        return True

    # ---------- alertas ----------
    def get_alertas(self, filters: dict | None = None) -> list[dict]:
        filters = filters or {}
        q = Alert.query
        if filters.get("obligacion_id"):
            q = q.filter(Alert.obligacion_id == filters["obligacion_id"])
        if filters.get("estado"):
            q = q.filter(Alert.estado == filters["estado"])
        if filters.get("tipo"):
            q = q.filter(Alert.tipo == filters["tipo"])
        if filters.get("fecha"):
            q = q.filter(Alert.fecha == parse_fecha(filters["fecha"]))
        return [a.to_dict() for a in q.order_by(Alert.fecha_calculo.desc()).all()]

    def save_alerta(self, data: dict) -> dict:
        aid = data.get("id") or new_id("ALT")
        a = db.session.get(Alert, aid)
        if a is None:
            a = Alert(id=aid)
            db.session.add(a)
        a.obligacion_id = data.get("obligacion_id", a.obligacion_id)
        a.tipo = data.get("tipo", a.tipo)
        a.fecha = parse_fecha(data.get("fecha")) or a.fecha
        a.fecha_calculo = _dt(data.get("fecha_calculo")) or a.fecha_calculo or utcnow()
        a.estado = data.get("estado", a.estado or "pendiente")
        a.fecha_envio = _dt(data.get("fecha_envio")) or a.fecha_envio
        a.destinatario = data.get("destinatario", a.destinatario)
        a.dias_restantes = data.get("dias_restantes", a.dias_restantes)
        db.session.commit()
        return a.to_dict()

    def update_alerta_estado(self, alerta_id: str, estado: str, extra: dict | None = None) -> dict | None:
        a = db.session.get(Alert, alerta_id)
        if a is None:
            return None
        a.estado = estado
        if extra and extra.get("fecha_envio"):
            a.fecha_envio = _dt(extra["fecha_envio"])
        if extra and extra.get("destinatario"):
            a.destinatario = extra["destinatario"]
        db.session.commit()
        return a.to_dict()

    # ---------- envios ----------
    def get_envios(self, filters: dict | None = None) -> list[dict]:
        filters = filters or {}
        q = Envio.query
        if filters.get("usuario"):
            q = q.filter(Envio.usuario == filters["usuario"])
        if filters.get("tipo"):
            q = q.filter(Envio.tipo == filters["tipo"])
        if filters.get("fecha_desde"):
            q = q.filter(Envio.fecha >= _dt(filters["fecha_desde"]))
        if filters.get("fecha_hasta"):
            hasta = _dt(filters["fecha_hasta"])
            q = q.filter(Envio.fecha <= hasta.replace(hour=23, minute=59, second=59))
        return [e.to_dict() for e in q.order_by(Envio.fecha.desc()).all()]

    def get_envio(self, envio_id: str) -> dict | None:
        e = db.session.get(Envio, envio_id)
        return e.to_dict() if e else None

    def create_envio(self, data: dict) -> dict:
        e = Envio(
            id=data.get("id") or new_id("ENV"),
            fecha=_dt(data.get("fecha")) or utcnow(),
            tipo=data.get("tipo") or "manual",
            usuario=data.get("usuario"),
            usuario_email=data.get("usuario_email"),
            correos_enviados=int(data.get("correos_enviados") or 0),
            fallidos=int(data.get("fallidos") or 0),
            alertas=list(data.get("alertas") or []),
            errores=list(data.get("errores") or []),
            estado=data.get("estado") or "completado",
            remitente=data.get("remitente"),
            nombre_remitente=data.get("nombre_remitente"),
            cc_global=list(data.get("cc_global") or []),
        )
        db.session.add(e)
        db.session.commit()
        return e.to_dict()

    # ---------- auditoria ----------
    def get_auditoria(self, filters: dict | None = None) -> list[dict]:
        filters = filters or {}
        q = AuditEvent.query
        if filters.get("usuario"):
            q = q.filter(AuditEvent.usuario == filters["usuario"])
        if filters.get("accion"):
            q = q.filter(AuditEvent.accion.ilike(f"%{filters['accion']}%"))
        if filters.get("ip"):
            q = q.filter(AuditEvent.ip == filters["ip"])
        if filters.get("fecha_desde"):
            q = q.filter(AuditEvent.fecha >= _dt(filters["fecha_desde"]))
        if filters.get("fecha_hasta"):
            hasta = _dt(filters["fecha_hasta"])
            q = q.filter(AuditEvent.fecha <= hasta.replace(hour=23, minute=59, second=59))
        return [a.to_dict() for a in q.order_by(AuditEvent.fecha.desc()).all()]

    def save_auditoria(self, data: dict) -> dict:
        a = AuditEvent(
            id=data.get("id") or new_id("AUD"),
            fecha=_dt(data.get("fecha")) or utcnow(),
            usuario=data.get("usuario"),
            usuario_email=data.get("usuario_email"),
            accion=data["accion"],
            contexto=dict(data.get("contexto") or {}),
            ip=data.get("ip"),
        )
        db.session.add(a)
        db.session.commit()
        return a.to_dict()

    # ---------- configuracion ----------
    def get_configuracion(self) -> dict | None:
        c = db.session.get(Configuracion, SINGLETON_ID)
        return dict(c.datos or {}) if c else None

    def save_configuracion(self, data: dict) -> dict:
        c = db.session.get(Configuracion, SINGLETON_ID)
        if c is None:
            c = Configuracion(id=SINGLETON_ID, datos={})
            db.session.add(c)
        c.datos = dict(data)
        c.updated_at = utcnow()
        db.session.commit()
        return dict(c.datos)
