"""
Unit tests for significance filtering and export.
"""

import pandas as pd
import pytest

from degsea.models import EnrichmentResult
from degsea.report import (
    EXPORT_COLUMNS,
    filter_significant,
    flatten_for_export,
    sheet_name,
    split_leading_edge,
    write_csv_tables,
    write_enrichment_workbook,
)


def make_result(name, padj, nes, lead=('G1', 'G2')):
    return EnrichmentResult(
        set_name=name,
        p_value=padj / 2,
        adjusted_p_value=padj,
        nes=nes,
        size=20,
        leading_edge_genes=tuple(lead),
        collection='TEST',
    )


@pytest.fixture
def results():
    return [
        make_result('WEAK', 0.04, 1.1),
        make_result('NOT_SIG', 0.2, 2.5),
        make_result('STRONG_DOWN', 0.001, -2.4),
        make_result('STRONG_UP', 0.001, 1.9),
        make_result('BOUNDARY', 0.05, 1.5),
        make_result('UNDEFINED', float('nan'), float('nan')),
    ]


class TestFilterSignificant:
    """Test the significance filter."""

    def test_threshold_is_strict(self, results):
        """adjusted p == alpha is not significant, NaN never is."""
        kept = filter_significant(results, alpha=0.05)

        names = [r.set_name for r in kept]
        assert 'BOUNDARY' not in names
        assert 'NOT_SIG' not in names
        assert 'UNDEFINED' not in names
        assert all(r.adjusted_p_value < 0.05 for r in kept)

    def test_sort_order(self, results):
        """Adjusted p ascending, then |NES| descending."""
        kept = filter_significant(results, alpha=0.05)

        assert [r.set_name for r in kept] == ['STRONG_DOWN', 'STRONG_UP', 'WEAK']

    def test_idempotent(self, results):
        once = filter_significant(results, alpha=0.05)
        twice = filter_significant(once, alpha=0.05)

        assert once == twice

    def test_input_untouched(self, results):
        before = list(results)
        filter_significant(results, alpha=0.01)

        assert results == before


class TestExport:
    """Test flattening and file output."""

    def test_flatten_columns(self, results):
        df = flatten_for_export(results[:2])

        assert list(df.columns) == EXPORT_COLUMNS
        assert df.loc[0, 'leading_edge_genes'] == 'G1; G2'
        assert df.loc[1, 'NES'] == 2.5

    def test_leading_edge_round_trip(self):
        """Splitting the exported field gives back the original sequence."""
        result = make_result('S1', 0.01, 1.0, lead=('TP53', 'MDM2', 'CDKN1A'))
        df = flatten_for_export([result], separator='; ')

        assert split_leading_edge(df.loc[0, 'leading_edge_genes'], '; ') == list(result.leading_edge_genes)

    def test_empty_leading_edge(self):
        result = make_result('S1', 0.01, 1.0, lead=())
        df = flatten_for_export([result])

        assert df.loc[0, 'leading_edge_genes'] == ''
        assert split_leading_edge('') == []

    def test_flatten_empty(self):
        df = flatten_for_export([])

        assert df.empty
        assert list(df.columns) == EXPORT_COLUMNS

    def test_sheet_names(self):
        """Invalid characters replaced, 31 char limit, unique."""
        taken = set()

        assert sheet_name('GO:BP/2023', taken) == 'GO_BP_2023'
        long_name = 'X' * 40
        first = sheet_name(long_name, taken)
        second = sheet_name(long_name, taken)

        assert len(first) == 31
        assert len(second) == 31
        assert first != second

    def test_workbook(self, results, tmp_path):
        tables = {'GO_BP': flatten_for_export(results[:3]), 'KEGG': flatten_for_export([])}
        summary = pd.DataFrame([{'collection': 'GO_BP', 'status': 'ok'}])

        path = write_enrichment_workbook(tables, tmp_path / 'out' / 'gsea.xlsx', summary=summary)

        sheets = pd.read_excel(path, sheet_name=None)
        assert list(sheets) == ['Summary', 'GO_BP', 'KEGG']
        assert len(sheets['GO_BP']) == 3

    def test_workbook_without_tables(self, tmp_path):
        path = write_enrichment_workbook({}, tmp_path / 'empty.xlsx')

        assert list(pd.read_excel(path, sheet_name=None)) == ['Results']

    def test_csv_tables(self, results, tmp_path):
        paths = write_csv_tables({'GO_BP': flatten_for_export(results)}, tmp_path)

        assert paths['GO_BP'].name == 'gsea_GO_BP.csv'
        assert len(pd.read_csv(paths['GO_BP'])) == len(results)
