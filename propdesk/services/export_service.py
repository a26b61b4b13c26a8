"""
Export Service - CSV and PDF downloads of tenants, properties and maintenance.
CSV goes through pandas, PDF through reportlab.
"""
import asyncio
import csv
import logging
from dataclasses import dataclass, field
from datetime import date
from io import BytesIO
from typing import Dict, List, Optional

import pandas as pd
from reportlab.lib import colors
from reportlab.lib.pagesizes import A4, landscape
from reportlab.lib.styles import getSampleStyleSheet
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from propdesk.clients.api_client import ApiClient, ApiError
from propdesk.models import Maintenance, Property, Tenant
from propdesk.services.currency import format_currency
from propdesk.services.notifications import Notifier

logger = logging.getLogger(__name__)

DATA_TYPES = ("all", "tenants", "properties", "maintenance")


class EmptyExportError(ValueError):
    """Nothing to export for the requested data type."""


@dataclass
class ExportData:
    tenants: List[Tenant] = field(default_factory=list)
    properties: List[Property] = field(default_factory=list)
    maintenance: List[Maintenance] = field(default_factory=list)

    def property_name(self, property_id: Optional[str], missing: str = "") -> str:
        for prop in self.properties:
            if prop.id == property_id:
                return prop.name
        return missing

    def count(self, data_type: str) -> int:
        if data_type == "all":
            return len(self.tenants) + len(self.properties) + len(self.maintenance)
        return len(getattr(self, data_type))


@dataclass
class ExportFile:
    filename: str
    content: bytes
    media_type: str


def _iso(value) -> str:
    return value.isoformat() if value is not None else ""


# =========================================================================
# Row builders (column order is the export contract)
# =========================================================================

def tenant_rows(data: ExportData) -> List[Dict]:
    return [
        {
            "Name": t.name,
            "ID Number": t.id_number or "",
            "Phone": t.phone,
            "Email": t.email or "",
            "Address": t.address or "",
            "Property": data.property_name(t.property_id),
            "Status": t.status,
            "Monthly Payment": t.payment or 0,
            "Payment Date": _iso(t.payment_date),
            "Payment Method": t.payment_method or "",
            "Months Paid": t.months_paid or 0,
            "Total Amount": t.total_amount or 0,
            "Stay Start Date": _iso(t.stay_start_date),
            "Stay End Date": _iso(t.stay_end_date),
            "Created Date": t.created_at or "",
            "Updated Date": t.updated_at or "",
        }
        for t in data.tenants
    ]


def property_rows(data: ExportData) -> List[Dict]:
    return [
        {
            "Name": p.name,
            "Address": p.address,
            "Type": p.type,
            "Status": p.status,
            "Monthly Rent": p.monthly_rent or 0,
            "Created Date": p.created_at or "",
            "Updated Date": p.updated_at or "",
        }
        for p in data.properties
    ]


def maintenance_rows(data: ExportData) -> List[Dict]:
    return [
        {
            "Title": m.title,
            "Description": m.description,
            "Property": data.property_name(m.property_id),
            "Status": m.status,
            "Priority": m.priority,
            "Scheduled Date": _iso(m.scheduled_date),
            "Completed Date": _iso(m.completed_date),
            "Cost": m.cost or 0,
            "Notes": m.notes or "",
            "Created Date": m.created_at or "",
            "Updated Date": m.updated_at or "",
        }
        for m in data.maintenance
    ]


def export_filename(data_type: str, extension: str, today: Optional[date] = None) -> str:
    today = today or date.today()
    stem = "complete_data" if data_type == "all" else data_type
    return f"{stem}_export_{today.isoformat()}.{extension}"


def to_csv(data: ExportData, data_type: str, today: Optional[date] = None) -> ExportFile:
    """All cells quoted; the combined export adds a leading Type column."""
    if data_type not in DATA_TYPES:
        raise ValueError(f"Unknown export type '{data_type}'")
    if data_type == "all":
        frames = [
            pd.DataFrame(rows).rename(columns={"Type": "PropertyType"}).assign(Type=kind)
            for kind, rows in (
                ("Tenant", tenant_rows(data)),
                ("Property", property_rows(data)),
                ("Maintenance", maintenance_rows(data)),
            )
            if rows
        ]
        if not frames:
            raise EmptyExportError("No data available to export")
        df = pd.concat(frames, ignore_index=True, sort=False)
        df = df[["Type"] + [c for c in df.columns if c != "Type"]]
    else:
        builder = {"tenants": tenant_rows, "properties": property_rows, "maintenance": maintenance_rows}[data_type]
        rows = builder(data)
        if not rows:
            raise EmptyExportError("No data available to export")
        df = pd.DataFrame(rows)

    content = df.fillna("").to_csv(index=False, quoting=csv.QUOTE_ALL, lineterminator="\n")
    return ExportFile(
        filename=export_filename(data_type, "csv", today),
        content=content.encode("utf-8"),
        media_type="text/csv; charset=utf-8",
    )


def _table(header: List[str], rows: List[List[str]]) -> Table:
    table = Table([header] + rows, repeatRows=1)
    table.setStyle(TableStyle([
        ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor("#f2f2f2")),
        ("GRID", (0, 0), (-1, -1), 0.5, colors.HexColor("#dddddd")),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("VALIGN", (0, 0), (-1, -1), "TOP"),
    ]))
    return table


def to_pdf(
    data: ExportData, data_type: str, title: str = "Export Data", today: Optional[date] = None
) -> ExportFile:
    if data_type not in DATA_TYPES:
        raise ValueError(f"Unknown export type '{data_type}'")
    if data.count(data_type) == 0:
        raise EmptyExportError("No data available to export")

    today = today or date.today()
    styles = getSampleStyleSheet()
    story = [
        Paragraph(f"<b>{title}</b>", styles["Title"]),
        Paragraph(f"Generated on {today.isoformat()}", styles["Normal"]),
        Spacer(1, 20),
    ]

    if data_type == "all":
        active = sum(1 for t in data.tenants if t.status == "active")
        pending = sum(1 for m in data.maintenance if m.status == "pending")
        story.append(Paragraph("Summary", styles["Heading3"]))
        for line in (
            f"Total Properties: {len(data.properties)}",
            f"Total Tenants: {len(data.tenants)}",
            f"Active Tenants: {active}",
            f"Total Maintenance Items: {len(data.maintenance)}",
            f"Pending Maintenance: {pending}",
        ):
            story.append(Paragraph(line, styles["Normal"]))
        story.append(Spacer(1, 20))

    if data_type in ("all", "tenants") and data.tenants:
        story.append(Paragraph(f"Tenants ({len(data.tenants)})", styles["Heading2"]))
        story.append(_table(
            ["Name", "Property", "Status", "Monthly Payment", "Total Paid"],
            [
                [t.name, data.property_name(t.property_id, "N/A"), t.status,
                 format_currency(t.payment or 0), format_currency(t.total_amount or 0)]
                for t in data.tenants
            ],
        ))
        story.append(Spacer(1, 20))

    if data_type in ("all", "properties") and data.properties:
        story.append(Paragraph(f"Properties ({len(data.properties)})", styles["Heading2"]))
        story.append(_table(
            ["Name", "Address", "Type", "Status", "Monthly Rent"],
            [
                [p.name, p.address, p.type, p.status, format_currency(p.monthly_rent or 0)]
                for p in data.properties
            ],
        ))
        story.append(Spacer(1, 20))

    if data_type in ("all", "maintenance") and data.maintenance:
        story.append(Paragraph(f"Maintenance ({len(data.maintenance)})", styles["Heading2"]))
        story.append(_table(
            ["Title", "Property", "Status", "Priority", "Scheduled Date"],
            [
                [m.title, data.property_name(m.property_id, "N/A"), m.status, m.priority,
                 _iso(m.scheduled_date) or "N/A"]
                for m in data.maintenance
            ],
        ))

    buffer = BytesIO()
    doc = SimpleDocTemplate(buffer, pagesize=landscape(A4), title=title)
    doc.build(story)
    return ExportFile(
        filename=export_filename(data_type, "pdf", today),
        content=buffer.getvalue(),
        media_type="application/pdf",
    )


class ExportService:
    """Fetches what an export needs and renders it."""

    def __init__(self, api: ApiClient, notifier: Notifier):
        self.api = api
        self.notifier = notifier

    async def collect(self, data_type: str) -> ExportData:
        """Properties are always fetched since every other export shows property names."""
        if data_type not in DATA_TYPES:
            raise ValueError(f"Unknown export type '{data_type}'")
        jobs = {"properties": self.api.get_properties()}
        if data_type in ("all", "tenants"):
            jobs["tenants"] = self.api.get_tenants()
        if data_type in ("all", "maintenance"):
            jobs["maintenance"] = self.api.get_maintenance()
        results = await asyncio.gather(*jobs.values())
        data = ExportData()
        for name, (records, _) in zip(jobs.keys(), results):
            setattr(data, name, records)
        return data

    async def export(self, data_type: str, fmt: str, title: str = "Export Data") -> ExportFile:
        try:
            data = await self.collect(data_type)
        except ApiError as e:
            self.notifier.error(f"Failed to load export data: {e.message}")
            raise
        try:
            if fmt == "csv":
                result = to_csv(data, data_type)
            elif fmt == "pdf":
                result = to_pdf(data, data_type, title)
            else:
                raise ValueError(f"Unknown export format '{fmt}'")
        except EmptyExportError as e:
            self.notifier.error(str(e))
            raise

        noun = "CSV file downloaded" if fmt == "csv" else "PDF report generated"
        self.notifier.success(f"{data_type.capitalize()} {noun} successfully")
        logger.info(f"[EXPORT] {result.filename} ({len(result.content)} bytes)")
        return result
