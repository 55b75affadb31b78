"""Names of the hosted store's tables, views and procedures.

The hosted schema is in Spanish, and some logical collections span a table
plus an embedded related resource (an issue line and its issue header).
``RemoteCollection`` and ``RemoteProcedure`` translate between those names
and the logical ones ``SqlStore`` exposes, so services never see the
difference between backends.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Sequence, Union


# A remote column is either a plain column of the table, or
# ``(embedded_resource, column)`` for a column of a related resource.
RemoteColumn = Union[str, tuple[str, str]]


@dataclass(frozen=True)
class RemoteCollection:
    name: str
    columns: Mapping[str, RemoteColumn] = field(default_factory=dict)

    def column(self, name: str) -> RemoteColumn:
        # Unmapped columns are sent as they are.
        return self.columns.get(name, name)

    def fields(self, select: Sequence[str]) -> tuple[str, ...]:
        return tuple(select) if select else tuple(self.columns)

    def select_clause(self, select: Sequence[str], filtered: Iterable[str] = ()) -> str:
        """PostgREST ``select`` value; embeds that are filtered on become inner joins."""
        fields = self.fields(select)
        if not fields:
            return "*"
        inner = {self.column(name)[0] for name in filtered if isinstance(self.column(name), tuple)}
        plain: list[str] = []
        embeds: dict[str, list[str]] = {}
        for name in fields:
            remote = self.column(name)
            if isinstance(remote, tuple):
                columns = embeds.setdefault(remote[0], [])
                if remote[1] not in columns:
                    columns.append(remote[1])
            elif remote not in plain:
                plain.append(remote)
        for embed in inner:
            embeds.setdefault(embed, [])
        parts = plain + [
            f"{embed}{'!inner' if embed in inner else ''}({','.join(columns) or '*'})"
            for embed, columns in embeds.items()
        ]
        return ",".join(parts)

    def filter_field(self, name: str) -> str:
        remote = self.column(name)
        return f"{remote[0]}.{remote[1]}" if isinstance(remote, tuple) else remote

    def order_field(self, name: str) -> str:
        remote = self.column(name)
        return f"{remote[0]}({remote[1]})" if isinstance(remote, tuple) else remote

    def to_logical(self, row: Mapping[str, Any], select: Sequence[str]) -> dict[str, Any]:
        fields = self.fields(select)
        if not fields:
            return dict(row)
        result: dict[str, Any] = {}
        for name in fields:
            remote = self.column(name)
            if isinstance(remote, tuple):
                embedded = row.get(remote[0])
                # To-many embeds come back as arrays.
                if isinstance(embedded, list):
                    embedded = embedded[0] if embedded else None
                result[name] = embedded.get(remote[1]) if isinstance(embedded, Mapping) else None
            else:
                result[name] = row.get(remote)
        return result


@dataclass(frozen=True)
class RemoteProcedure:
    name: str
    # A parameter mapped to None is not accepted remotely and is dropped.
    params: Mapping[str, str | None] = field(default_factory=dict)
    columns: Mapping[str, str] = field(default_factory=dict)

    def payload(self, params: Mapping[str, Any]) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name, value in params.items():
            remote = self.params.get(name, name)
            if remote is None or value is None:
                continue
            payload[remote] = value
        return payload

    def order_field(self, name: str) -> str:
        return self.columns.get(name, name)

    def to_logical(self, row: Mapping[str, Any]) -> dict[str, Any]:
        if not self.columns:
            return dict(row)
        return {name: row.get(remote) for name, remote in self.columns.items()}


REMOTE_COLLECTIONS: dict[str, RemoteCollection] = {
    "articles": RemoteCollection(
        "articulo_01",
        {
            "code": "codigo_articulo",
            "name": "nombre_articulo",
            "unit": "unidad",
            "brand": "marca",
            "available_qty": "cantidad_disponible",
            "unit_price": "precio_unitario",
            "expense_code": "codigo_gasto",
        },
    ),
    "expense_categories": RemoteCollection(
        "codigo_gasto_05",
        {"code": "codigo_gasto", "name": "subpartida_presupuestaria"},
    ),
    "installations": RemoteCollection(
        "instalaciones_municipales_16",
        {"id": "id_instalacion_municipal", "name": "instalacion_municipal"},
    ),
    "people": RemoteCollection(
        "colaboradores_06",
        {
            "identification": "identificacion",
            "name": "colaborador",
            "alias": "alias",
            "authorized": "autorizado",
        },
    ),
    "requests": RemoteCollection(
        "solicitud_17",
        {
            "number": "numero_solicitud",
            "request_type": "tipo_solicitud",
            "maintenance_area": "area_mantenimiento",
            "installation_id": "instalacion_municipal",
            "installation_name": ("instalaciones_municipales_16", "instalacion_municipal"),
        },
    ),
    "consumption_events": RemoteCollection(
        "dato_salida_13",
        {
            "line_id": "registro_salida",
            "event_id": ("salida_articulo_08", "id_salida"),
            "occurred_on": ("salida_articulo_08", "fecha_salida"),
            "item_code": "articulo",
            "quantity": "cantidad",
            "unit_price": "precio_unitario",
            "subtotal": "subtotal",
            "request_number": ("salida_articulo_08", "numero_solicitud"),
            "withdrawn_by": ("salida_articulo_08", "retira"),
        },
    ),
    "daily_issue_summary": RemoteCollection(
        "vw_resumen_diario_salida",
        {
            "issued_on": "fecha",
            "item_code": "codigo_articulo",
            "item_name": "nombre_articulo",
            "request_number": "numero_solicitud",
            "department": "nombre_dependencia",
            "maintenance_area": "area_mantenimiento",
            "total_quantity": "cantidad_total",
            "unit_cost": "costo_unitario",
            "total_cost": "total_costo",
        },
    ),
}


REMOTE_PROCEDURES: dict[str, RemoteProcedure] = {
    "compute_purchase_projection": RemoteProcedure(
        "calcular_proyeccion_compras",
        params={
            "history_months": "meses_historico",
            "lead_time_months": "meses_espera",
            "cycle_months": "meses_ciclo",
            "safety_factor": "factor_seguridad",
            # The hosted procedure always projects from the current date.
            "as_of": None,
        },
        columns={
            "item_code": "codigo_articulo",
            "item_name": "nombre_articulo",
            "unit": "unidad",
            "expense_code": "codigo_gasto",
            "current_stock": "stock_actual",
            "monthly_average": "promedio_mensual",
            "lead_time_consumption": "consumo_espera",
            "residual_stock": "stock_residual",
            "cycle_demand": "demanda_futura",
            "suggested_quantity": "cantidad_sugerida",
            "unit_cost": "ultimo_precio",
            "estimated_cost": "costo_estimado",
        },
    ),
}
