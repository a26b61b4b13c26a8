"""Test CSV and PDF exports."""
from datetime import date

import pytest

from propdesk.models import Maintenance, Property, Tenant
from propdesk.services.export_service import (
    EmptyExportError, ExportData, export_filename, to_csv, to_pdf,
)

TODAY = date(2024, 5, 1)


def _data():
    return ExportData(
        properties=[Property(id="p1", name="Sunset Villa", address="KG 11 Ave", monthly_rent=150000)],
        tenants=[Tenant(id="t1", name="Alice", phone="0788111111", property_id="p1", payment=150000)],
        maintenance=[Maintenance(id="m1", title="Leaking roof", property_id="p9", priority="urgent")],
    )


def test_filenames():
    assert export_filename("tenants", "csv", TODAY) == "tenants_export_2024-05-01.csv"
    assert export_filename("all", "pdf", TODAY) == "complete_data_export_2024-05-01.pdf"


def test_tenant_csv_header_and_quoting():
    result = to_csv(_data(), "tenants", TODAY)
    lines = result.content.decode("utf-8").split("\n")
    assert lines[0] == (
        '"Name","ID Number","Phone","Email","Address","Property","Status","Monthly Payment",'
        '"Payment Date","Payment Method","Months Paid","Total Amount","Stay Start Date",'
        '"Stay End Date","Created Date","Updated Date"'
    )
    assert lines[1].startswith('"Alice","","0788111111","","","Sunset Villa","active"')
    assert result.filename == "tenants_export_2024-05-01.csv"


def test_property_and_maintenance_headers():
    properties = to_csv(_data(), "properties", TODAY).content.decode("utf-8")
    assert properties.startswith('"Name","Address","Type","Status","Monthly Rent","Created Date","Updated Date"\n')
    maintenance = to_csv(_data(), "maintenance", TODAY).content.decode("utf-8")
    assert maintenance.startswith('"Title","Description","Property","Status","Priority"')
    # Unknown property renders blank
    assert '"Leaking roof","","","pending","urgent"' in maintenance


def test_combined_csv_has_type_column():
    text = to_csv(_data(), "all", TODAY).content.decode("utf-8")
    header, *rows = [line for line in text.split("\n") if line]
    assert header.startswith('"Type","Name"')
    assert '"PropertyType"' in header
    assert [row.split(",")[0] for row in rows] == ['"Tenant"', '"Property"', '"Maintenance"']


def test_empty_export_rejected():
    with pytest.raises(EmptyExportError):
        to_csv(ExportData(), "tenants", TODAY)
    with pytest.raises(EmptyExportError):
        to_pdf(ExportData(), "all")


def test_pdf_rendered():
    result = to_pdf(_data(), "all", "Monthly Report", TODAY)
    assert result.content.startswith(b"%PDF")
    assert result.media_type == "application/pdf"


@pytest.mark.asyncio
async def test_export_service_notifies(backoffice):
    result = await backoffice.exports.export("tenants", "csv")
    assert "Alice Uwase" in result.content.decode("utf-8")
    assert [n.message for n in backoffice.notifier.drain()] == ["Tenants CSV file downloaded successfully"]


@pytest.mark.asyncio
async def test_export_service_fetches_only_what_it_needs(backoffice, fake_api):
    await backoffice.exports.export("properties", "pdf")
    assert fake_api.calls_to("GET", "/tenants") == []
    assert fake_api.calls_to("GET", "/maintenance") == []
