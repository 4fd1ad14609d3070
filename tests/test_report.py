import json

import pandas as pd

from licsync.core.models import DesiredAssignment, Outcome, OutcomeStatus, ReconciliationPlan
from licsync.report.aggregator import Aggregator
from licsync.report.generator import (
    REPORT_COLUMNS, catalog_rows, export_report, format_table, print_rows, print_summary,
)

from conftest import E3, E5, TEAMS, YAMMER


def _aggregate():
    agg = Aggregator(["users.csv: source is empty, skipped"])
    agg.add(Outcome(
        identifier="alice@contoso.com",
        status=OutcomeStatus.SUCCESS,
        plan=ReconciliationPlan(
            remove_sku_ids=(E3,),
            add_assignments=(DesiredAssignment(E5, (TEAMS, YAMMER)),),
        ),
        attempts=2,
        principal_id="u1",
    ))
    agg.add(Outcome(
        identifier="new@contoso.com",
        status=OutcomeStatus.FAILED,
        error_detail="create failed: ForbiddenError (HTTP 403): Forbidden",
        source={"UserPrincipalName": "new@contoso.com", "EmployeeId": "1001", "status": "ignored"},
        credential="Pw!12345",
    ))
    return agg


def test_counts_cover_every_status():
    agg = _aggregate()
    assert agg.counts() == {"Success": 1, "Failed": 1, "DryRun": 0, "SkippedNoOp": 0}
    assert agg.any_failed
    assert len(agg) == 2


def test_records_use_catalog_names(catalog):
    rows = _aggregate().to_records(catalog)
    first = rows[0]
    assert first["appliedSkuIds"] == "ENTERPRISEPREMIUM"
    assert first["appliedDisabledPlans"] == "ENTERPRISEPREMIUM:TEAMS1|YAMMER_ENTERPRISE"
    assert first["removedSkuIds"] == "ENTERPRISEPACK"
    assert first["attempts"] == 2
    assert "credential" not in first


def test_records_echo_source_without_overwriting_computed_columns():
    rows = _aggregate().to_records()
    second = rows[1]
    assert second["status"] == "Failed"
    assert second["source.status"] == "ignored"
    assert second["UserPrincipalName"] == "new@contoso.com"
    assert second["EmployeeId"] == "1001"
    assert second["credential"] == "Pw!12345"
    assert second["appliedSkuIds"] == ""


def test_export_csv_column_order(tmp_path):
    rows = _aggregate().to_records()
    path = export_report(rows, tmp_path / "out" / "report.csv")
    df = pd.read_csv(path, dtype=str, keep_default_na=False)
    assert list(df.columns[: len(REPORT_COLUMNS)]) == REPORT_COLUMNS
    assert "EmployeeId" in df.columns
    assert df.loc[1, "credential"] == "Pw!12345"


def test_export_json(tmp_path):
    rows = _aggregate().to_records()
    path = export_report(rows, tmp_path / "report.json")
    data = json.loads(path.read_text(encoding="utf-8"))
    assert [r["identifier"] for r in data] == ["alice@contoso.com", "new@contoso.com"]


def test_console_output_hides_credentials(capsys):
    rows = _aggregate().to_records()
    print_rows(rows, "table")
    print_rows(rows, "json")
    print_summary(_aggregate().counts(), ["a warning"])
    out = capsys.readouterr().out
    assert "Pw!12345" not in out
    assert "Success=1" in out
    assert "warning: a warning" in out


def test_format_table_truncates_and_fills_blanks():
    text = format_table([{"a": "x" * 100, "b": ""}], ["a", "b"])
    lines = text.splitlines()
    assert len(lines) == 3
    assert "…" in lines[2]
    assert "| -" in lines[2]


def test_catalog_rows(catalog):
    rows = catalog_rows(catalog.available(), with_plans=True)
    assert rows[0]["skuPartNumber"] == "ENTERPRISEPACK"
    assert rows[0]["available"] == 5
    assert "TEAMS1" in rows[0]["plans"]
