"""
Unit tests for payload sniffing, table extraction and index-page parsing.
"""
import json

import pytest

from mint_figures.content import (
    ContentKind,
    is_block_page,
    rows_from_html,
    rows_from_payload,
    sniff_kind,
)
from mint_figures.errors import MissingStructureError
from mint_figures.index_pages import (
    csv_manifest_index,
    dropdown_periods,
    dropdown_items,
    week_option_values,
    weekly_index,
    weekly_option_periods,
)

pytestmark = pytest.mark.unit

REPORT_TABLE = """
<html><body>
<table>
  <thead><tr><th>Program Name</th><th>Item</th><th>Item Description</th><th>Adj. Net Demand</th></tr></thead>
  <tbody>
    <tr><td>Proof Sets</td><td>24RG</td><td>2024 Proof Set</td><td>1,000</td></tr>
    <tr><td></td><td></td><td></td><td></td></tr>
    <tr><td>Rolls &amp; Bags &amp; Boxes</td><td>24AA</td><td>Roll</td></tr>
  </tbody>
</table>
</body></html>
"""

WEEKLY_INDEX = """
<html><body>
<select id="years"><option value="2016">2016</option></select>
<select id="2016weeks">
  <option value="">Select a Week</option>
  <option value="01-08">January 8</option>
  <option value="01-15">January 15</option>
</select>
</body></html>
"""


class TestSniffing:
    def test_content_type_wins(self):
        assert sniff_kind(content_type="application/json; charset=utf-8", body=b"<x>") == ContentKind.JSON
        assert sniff_kind(content_type="text/html", body=b"[]") == ContentKind.HTML

    def test_body_fallback(self):
        assert sniff_kind(content_type=None, body=b"\xef\xbb\xbf[{}]") == ContentKind.JSON
        assert sniff_kind(content_type=None, body=b"<!DOCTYPE html><html>") == ContentKind.HTML
        assert sniff_kind(content_type="text/plain", body=b"hello") == ContentKind.BYTES

    def test_block_page(self):
        blocked = b"<html><body><h1>Request Blocked</h1></body></html>"
        assert is_block_page(blocked, content_type="text/html")
        assert not is_block_page(b"[]", content_type="application/json")

    def test_report_mentioning_access_denied_is_not_a_block(self):
        page = b"<html><body><p>Access Denied items</p><table><tbody></tbody></table></body></html>"
        assert not is_block_page(page, content_type="text/html")


class TestTables:
    def test_rows_from_header(self):
        rows = rows_from_html(REPORT_TABLE)
        assert rows[0] == {
            "Program Name": "Proof Sets",
            "Item": "24RG",
            "Item Description": "2024 Proof Set",
            "Adj. Net Demand": "1,000",
        }
        assert len(rows) == 2
        assert rows[1]["Program Name"] == "Rolls & Bags & Boxes"
        assert rows[1]["Adj. Net Demand"] == ""

    def test_positional_columns(self):
        html = "<table><tbody><tr><td>A</td><td>B</td></tr></tbody></table>"
        assert rows_from_html(html, columns=("x", "y", "z")) == [{"x": "A", "y": "B", "z": ""}]

    def test_missing_table(self):
        with pytest.raises(MissingStructureError):
            rows_from_html("<html><body>Nothing here</body></html>")

    def test_missing_header(self):
        with pytest.raises(MissingStructureError):
            rows_from_html("<table><tbody><tr><td>A</td></tr></tbody></table>")

    def test_json_payload_with_bom(self):
        body = b"\xef\xbb\xbf" + json.dumps([{"Design": "Weir Farm", "Denver": None}]).encode("utf-8")
        assert rows_from_payload(body) == [{"Design": "Weir Farm", "Denver": ""}]

    def test_json_payload_must_be_array(self):
        with pytest.raises(MissingStructureError):
            rows_from_payload(b'{"error": "no data"}', content_type="application/json")

    def test_unknown_payload(self):
        with pytest.raises(MissingStructureError):
            rows_from_payload(b"plain text", content_type="text/plain")


class TestIndexPages:
    """Reading the period lists out of upstream index pages."""

    def test_dropdown_items(self, dropdown_page):
        html = dropdown_page({"2024": {"June": ["7", "14"]}})
        assert dropdown_items(html) == {"2024": {"June": ["7", "14"]}}
        assert dropdown_periods(html).keys() == ["2024-06-07", "2024-06-14"]

    def test_dropdown_missing(self):
        with pytest.raises(MissingStructureError):
            dropdown_items("<html><body></body></html>")

    def test_dropdown_not_json(self):
        html = '<div data-tabletype="cumulative" data-dropdownitems="not json"></div>'
        with pytest.raises(MissingStructureError):
            dropdown_items(html)

    def test_week_options(self):
        assert week_option_values(WEEKLY_INDEX, 2016) == ["", "01-08", "01-15"]
        assert week_option_values(WEEKLY_INDEX, 2015) is None

    def test_weekly_option_periods(self):
        assert weekly_option_periods(WEEKLY_INDEX, 2015) is None
        assert weekly_option_periods(WEEKLY_INDEX, 2016).keys() == ["2016-01-08", "2016-01-15"]

    def test_weekly_index_skips_missing_years(self):
        result = weekly_index(WEEKLY_INDEX, [2015, 2016])
        assert list(result) == [2016]
        assert result[2016].keys() == ["2016-01-08", "2016-01-15"]

    def test_csv_manifest(self):
        manifest = {
            "jcr:primaryType": "sling:Folder",
            "CIRC-ATBQ-2020.csv": {},
            "CIRC-AWQ-2022.csv": {},
            "CIRC-WJNS-20x5.csv": {},
        }
        result = csv_manifest_index(manifest)
        assert result["ATBQ"].keys() == ["2020"]
        assert result["AWQ"].keys() == ["2022"]
        assert result["WJNS"].malformed == ["CIRC-WJNS-20x5.csv"]
