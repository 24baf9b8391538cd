"""
End-to-end tests for the enrichment pipeline and the command line.
"""

import json
from unittest import mock

import pandas as pd
import pytest

from degsea.__main__ import main
from degsea.config import PipelineConfig
from degsea.errors import ConfigurationError
from degsea.gene_sets import GeneSetCollection
from degsea.pipeline import EnrichmentPipeline

from conftest import FailingBackend, FakeBackend


@pytest.fixture
def config():
    return PipelineConfig(min_set_size=2, max_set_size=10, alpha=0.9, permutation_num=10, seed=11)


def de_frame(rows):
    return pd.DataFrame([r.to_dict() for r in rows])


class TestEnrichmentPipeline:
    """Test a full run with a deterministic backend."""

    def test_run_without_outputs(self, config, de_rows, collections, fake_backend):
        pipeline = EnrichmentPipeline(config, backend=fake_backend)

        result = pipeline.run(de_rows, collections=collections, write_outputs=False)

        assert result.status == 'ok'
        assert result.organism == 'human'
        assert result.normalization.dropped_count == 2
        assert len(result.ranking) == 12
        assert result.ranking.genes[0] == 'UP6'
        assert result.ranking.genes[-1] == 'DN6'
        assert {r.set_name for r in result.significant['GO_BP']} == {'UP_SET', 'DOWN_SET'}
        assert result.outputs == {}
        assert {c['seed'] for c in fake_backend.calls} == {11}

    def test_metadata(self, config, de_rows, collections, fake_backend):
        result = EnrichmentPipeline(config, backend=fake_backend).run(
            de_rows, collections=collections, write_outputs=False
        )
        metadata = result.metadata

        assert metadata['parameters']['seed'] == 11
        assert metadata['input_summary']['ranked_genes'] == 12
        assert set(metadata['gene_set_collections']) == {'GO_BP', 'KEGG'}
        assert len(metadata['gene_set_collections']['KEGG']['hash']) == 16
        assert len(metadata['warnings']) == 2

    def test_dataframe_input(self, config, de_rows, collections, fake_backend):
        result = EnrichmentPipeline(config, backend=fake_backend).run(
            de_frame(de_rows), collections=collections, write_outputs=False
        )

        assert len(result.ranking) == 12

    def test_outputs_written(self, config, de_rows, collections, fake_backend, tmp_path):
        config.export_csv = True
        config.run_ora = True
        pipeline = EnrichmentPipeline(config, backend=fake_backend)

        result = pipeline.run(de_rows, collections=collections, output_dir=tmp_path)

        assert (tmp_path / 'ranked_genes.rnk').exists()
        assert (tmp_path / 'csv' / 'gsea_GO_BP.csv').exists()
        assert result.outputs['ora_workbook'].exists()
        assert result.ora['GO_BP']

        sheets = pd.read_excel(result.outputs['workbook'], sheet_name=None)
        assert list(sheets) == ['Summary', 'GO_BP', 'KEGG']
        assert '; ' in ' '.join(sheets['KEGG']['leading_edge_genes'].dropna())

        metadata = json.loads((tmp_path / 'run_metadata.json').read_text())
        assert metadata['output_summary']['status'] == 'ok'
        assert (tmp_path / 'run_metadata.yaml').exists()

    def test_partial_failure(self, config, de_rows, collections):
        pipeline = EnrichmentPipeline(config, backend=FailingBackend(['MIXED']))

        result = pipeline.run(de_rows, collections=collections, write_outputs=False)

        assert result.status == 'partial'
        assert 'KEGG' not in result.significant
        assert result.significant['GO_BP']
        assert any('KEGG' in w for w in result.metadata['warnings'])

    def test_empty_collection_aborts(self, config, de_rows, fake_backend):
        pipeline = EnrichmentPipeline(config, backend=fake_backend)

        with pytest.raises(ConfigurationError):
            pipeline.run(de_rows, collections={'EMPTY': GeneSetCollection('EMPTY', {})},
                         write_outputs=False)
        assert fake_backend.calls == []

    def test_nothing_rankable_aborts(self, config, fake_backend, collections):
        from degsea.models import DEResult

        pipeline = EnrichmentPipeline(config, backend=fake_backend)

        with pytest.raises(ConfigurationError, match="Empty ranking"):
            pipeline.run([DEResult('G1', None, None)], collections=collections, write_outputs=False)

    def test_collections_loaded_from_config(self, de_rows, fake_backend, tmp_path):
        gmt = tmp_path / 'custom.gmt'
        gmt.write_text("UP_SET\t\tUP1\tUP2\tUP3\nDOWN_SET\t\tDN1\tDN2\n")
        config = PipelineConfig(
            organism='auto', collections={'CUSTOM': str(gmt)},
            min_set_size=2, max_set_size=10,
        )

        result = EnrichmentPipeline(config, backend=fake_backend).run(de_rows, write_outputs=False)

        assert list(result.batch.runs) == ['CUSTOM']
        assert result.batch.runs['CUSTOM'].result.n_tested_sets == 2


class TestCommandLine:
    """Test the degsea entry point."""

    def test_run(self, de_rows, tmp_path):
        gmt = tmp_path / 'sets.gmt'
        gmt.write_text("UP_SET\t\tUP1\tUP2\tUP3\nDOWN_SET\t\tDN1\tDN2\tDN3\n")
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(
            f"collections:\n  CUSTOM: {gmt}\nmin_set_size: 2\nmax_set_size: 10\n"
        )
        table = tmp_path / 'de.csv'
        de_frame(de_rows).to_csv(table, index=False)
        out = tmp_path / 'results'

        with mock.patch('degsea.pipeline.GseapyPrerankBackend', lambda threads=1: FakeBackend()):
            code = main(['run', str(config_path), str(table), '--output-dir', str(out)])

        assert code == 0
        assert (out / 'gsea_results.xlsx').exists()
        assert (out / 'run_metadata.json').exists()

    def test_bad_config_exit_code(self, tmp_path):
        config_path = tmp_path / 'config.yaml'
        config_path.write_text("min_set_size: 50\nmax_set_size: 10\n")

        assert main(['run', str(config_path), str(tmp_path / 'de.csv')]) == 2

    def test_undecodable_gmt_exit_code(self, de_rows, tmp_path):
        gmt = tmp_path / 'sets.gmt'
        gmt.write_bytes(b"UP_SET\t\tUP1\tUP\xe92\n")
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(f"collections:\n  CUSTOM: {gmt}\nmin_set_size: 2\nmax_set_size: 10\n")
        table = tmp_path / 'de.csv'
        de_frame(de_rows).to_csv(table, index=False)

        with mock.patch('degsea.pipeline.GseapyPrerankBackend', lambda threads=1: FakeBackend()):
            code = main(['run', str(config_path), str(table), '--output-dir', str(tmp_path / 'out')])

        assert code == 2
