"""
Organism support for DEGSEA.

Resolves user-supplied organism names to a supported species and provides
the Enrichr library names used as default gene-set collections:
- Human (Homo sapiens)
- Mouse (Mus musculus)
"""

import logging
from dataclasses import dataclass
from typing import Dict, List

from .errors import ConfigurationError

logger = logging.getLogger("DEGSEA.Species")


# Supported species configuration
SUPPORTED_SPECIES = {
    'human': {
        'scientific_name': 'Homo sapiens',
        'taxon_id': 9606,
        'enrichr_organism': 'Human',
        'ensembl_prefix': 'ENSG',
        'common_aliases': ['human', 'hsa', 'hs', 'homo sapiens', 'h.sapiens', 'hsapiens'],
        'libraries': {
            'GO_BP': 'GO_Biological_Process_2023',
            'GO_CC': 'GO_Cellular_Component_2023',
            'GO_MF': 'GO_Molecular_Function_2023',
            'KEGG': 'KEGG_2021_Human',
        },
    },
    'mouse': {
        'scientific_name': 'Mus musculus',
        'taxon_id': 10090,
        'enrichr_organism': 'Mouse',
        'ensembl_prefix': 'ENSMUSG',
        'common_aliases': ['mouse', 'mmu', 'mm', 'mus musculus', 'm.musculus', 'mmusculus'],
        'libraries': {
            'GO_BP': 'GO_Biological_Process_2023',
            'GO_CC': 'GO_Cellular_Component_2023',
            'GO_MF': 'GO_Molecular_Function_2023',
            'KEGG': 'KEGG_2019_Mouse',
        },
    },
}


@dataclass(frozen=True)
class SpeciesInfo:
    """A resolved organism"""
    species_key: str  # 'human', 'mouse'
    scientific_name: str
    taxon_id: int
    enrichr_organism: str

    @property
    def default_libraries(self) -> Dict[str, str]:
        """Collection name -> Enrichr library name"""
        return dict(SUPPORTED_SPECIES[self.species_key]['libraries'])


def resolve_species(name: str) -> SpeciesInfo:
    """
    Resolve an organism name or alias.

    Raises:
        ConfigurationError: the organism is not supported
    """
    key = str(name).strip().lower()
    for species_key, config in SUPPORTED_SPECIES.items():
        if key == species_key or key in config['common_aliases'] or key == str(config['taxon_id']):
            return SpeciesInfo(
                species_key=species_key,
                scientific_name=config['scientific_name'],
                taxon_id=config['taxon_id'],
                enrichr_organism=config['enrichr_organism'],
            )

    raise ConfigurationError(
        f"Unsupported organism '{name}'. Supported: {', '.join(SUPPORTED_SPECIES)}"
    )


def guess_species(gene_ids: List[str]) -> str:
    """
    Guess the organism from Ensembl prefixes in the first 100 ids.

    Symbols are ambiguous between human and mouse, so anything without an
    Ensembl mouse prefix is reported as human.
    """
    sample = [str(g) for g in gene_ids[:100]]
    n_mouse = sum(1 for g in sample if g.startswith('ENSMUSG'))
    n_human = sum(1 for g in sample if g.startswith('ENSG'))
    species = 'mouse' if n_mouse > n_human else 'human'
    logger.info(f"Guessed organism from gene ids: {species}")
    return species
