"""
Unit tests for pipeline configuration and organism handling.
"""

import pytest

from degsea.config import PipelineConfig
from degsea.errors import ConfigurationError
from degsea.species import guess_species, resolve_species


class TestPipelineConfig:
    """Test configuration loading and validation."""

    def test_defaults(self):
        config = PipelineConfig()

        assert config.min_set_size == 15
        assert config.max_set_size == 500
        assert config.alpha == 0.05
        assert config.seed == 42
        assert config.leading_edge_separator == "; "

    def test_from_yaml(self, tmp_path):
        path = tmp_path / 'config.yaml'
        path.write_text(
            "organism: mouse\n"
            "collections:\n"
            "  GO_BP: GO_Biological_Process_2023\n"
            "  CUSTOM: /data/custom.gmt\n"
            "min_set_size: 10\n"
            "max_set_size: null\n"
            "seed: 7\n"
        )

        config = PipelineConfig.from_yaml(path)

        assert config.organism == 'mouse'
        assert config.collections['CUSTOM'] == '/data/custom.gmt'
        assert config.max_set_size is None
        assert config.seed == 7

    def test_yaml_round_trip(self, tmp_path):
        config = PipelineConfig(organism='human', collections={'KEGG': 'KEGG_2021_Human'}, alpha=0.1)
        path = tmp_path / 'saved.yaml'
        config.to_yaml(path)

        assert PipelineConfig.from_yaml(path) == config

    def test_unknown_keys_rejected(self):
        with pytest.raises(ConfigurationError, match="min_size"):
            PipelineConfig.from_dict({'min_size': 5})

    def test_min_larger_than_max(self):
        with pytest.raises(ConfigurationError, match="larger than"):
            PipelineConfig.from_dict({'min_set_size': 100, 'max_set_size': 50})

    @pytest.mark.parametrize("alpha", [0.0, -0.1, 1.5])
    def test_alpha_out_of_range(self, alpha):
        with pytest.raises(ConfigurationError, match="alpha"):
            PipelineConfig.from_dict({'alpha': alpha})

    def test_unknown_organism(self):
        with pytest.raises(ConfigurationError, match="Unsupported organism"):
            PipelineConfig.from_dict({'organism': 'zebrafish'})

    def test_missing_file(self):
        with pytest.raises(FileNotFoundError):
            PipelineConfig.from_yaml('/nonexistent/config.yaml')

    def test_default_collections_per_organism(self):
        config = PipelineConfig()

        assert config.collection_sources('mouse')['KEGG'] == 'KEGG_2019_Mouse'
        assert set(config.collection_sources('human')) == {'GO_BP', 'GO_CC', 'GO_MF', 'KEGG'}


class TestSpecies:
    """Test organism resolution."""

    @pytest.mark.parametrize("name", ['human', 'Homo sapiens', 'hsa', '9606'])
    def test_human_aliases(self, name):
        info = resolve_species(name)

        assert info.species_key == 'human'
        assert info.enrichr_organism == 'Human'

    def test_mouse(self):
        assert resolve_species('Mus musculus').taxon_id == 10090

    def test_guess_species(self):
        assert guess_species(['ENSMUSG00000000001', 'ENSMUSG00000000028']) == 'mouse'
        assert guess_species(['ENSG00000141510', 'TP53']) == 'human'
        assert guess_species(['Trp53', 'Actb']) == 'human'
