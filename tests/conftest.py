"""
Shared fixtures: deterministic stand-ins for the gseapy backend.
"""

import threading

import pandas as pd
import pytest

from degsea.gene_sets import GeneSetCollection
from degsea.models import DEResult
from degsea.ranking import GeneRanking


class FakeBackend:
    """
    Scores a set by the mean ranking score of its members.

    Returns a table in gseapy 1.x res2d layout and records every call.
    """

    def __init__(self):
        self.calls = []
        self._lock = threading.Lock()

    def prerank(self, ranking, gene_sets, min_size, max_size, permutation_num, seed):
        with self._lock:
            self.calls.append({
                'sets': sorted(gene_sets),
                'n_genes': len(ranking),
                'min_size': min_size,
                'max_size': max_size,
                'permutation_num': permutation_num,
                'seed': seed,
            })

        scale = float(ranking.abs().max()) or 1.0
        rows = []
        for name, genes in gene_sets.items():
            members = [g for g in ranking.index if g in set(genes)]
            es = float(ranking[members].mean()) / scale
            lead = [g for g in members if (ranking[g] > 0) == (es > 0)]
            rows.append({
                'Name': 'prerank',
                'Term': name,
                'ES': es,
                'NES': es * 2,
                'NOM p-val': round(max(0.001, 1.0 - abs(es)), 6),
                'FDR q-val': 1.0,
                'FWER p-val': 1.0,
                'Tag %': f"{len(lead)}/{len(members)}",
                'Gene %': '0%',
                'Lead_genes': ';'.join(lead),
            })
        return pd.DataFrame(rows)


class FailingBackend:
    """Raises for chosen collections, delegates to FakeBackend otherwise"""

    def __init__(self, fail_on_sets):
        self.fail_on_sets = set(fail_on_sets)
        self.delegate = FakeBackend()

    def prerank(self, ranking, gene_sets, **kwargs):
        if self.fail_on_sets & set(gene_sets):
            raise FloatingPointError("numerical failure in permutation")
        return self.delegate.prerank(ranking, gene_sets, **kwargs)


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def small_ranking():
    return GeneRanking.from_pairs([('A', 5.0), ('B', 3.0), ('C', -1.0), ('D', -4.0)])


@pytest.fixture
def de_rows():
    """Twelve genes, six up and six down, with one row of each NA kind"""
    rows = []
    for i in range(1, 7):
        rows.append(DEResult(f'UP{i}', 1.0 + i, 10.0 ** -i, 10.0 ** -i * 2))
        rows.append(DEResult(f'DN{i}', -1.0 - i, 10.0 ** -i, 10.0 ** -i * 2))
    rows.append(DEResult('NA_P', 2.0, None, None))
    rows.append(DEResult('NA_LFC', None, 0.01, 0.02))
    return rows


@pytest.fixture
def collections():
    return {
        'GO_BP': GeneSetCollection('GO_BP', {
            'UP_SET': ['UP1', 'UP2', 'UP3'],
            'DOWN_SET': ['DN1', 'DN2', 'DN3'],
            'NOT_EXPRESSED': ['X1', 'X2'],
        }),
        'KEGG': GeneSetCollection('KEGG', {
            'MIXED': ['UP4', 'DN4', 'UP5'],
            'UP_ONLY': ['UP1', 'UP6'],
        }),
    }
