import numpy as np
import pytest

from kdsearch.config import IndexConfig, SearchConfig, VectorizerConfig
from kdsearch.datasets import generate_mock_dataset
from kdsearch.embedding import HashVectorizer
from kdsearch.errors import DimensionMismatchError, EmptyIndexError
from kdsearch.kdtree import KDTreeIndex
from kdsearch.search import SemanticSearch


def make_engine(n=60, leaf_size=3, dim=32):
    cfg = SearchConfig(vectorizer=VectorizerConfig(dim=dim), index=IndexConfig(leaf_size=leaf_size, top_k=4))
    engine = SemanticSearch(cfg)
    return engine.build(generate_mock_dataset(n, engine.vectorizer).items)


def test_text_query_finds_stored_text():
    engine = make_engine()
    best = engine.nearest("Sample text 17")
    assert best.text == "Sample text 17"
    assert best.distance == pytest.approx(0.0, abs=1e-12)


def test_query_text_is_normalized_like_stored_text():
    engine = make_engine()
    assert engine.nearest("  SAMPLE, text... 17!").text == "Sample text 17"


def test_k_nearest_uses_configured_top_k():
    engine = make_engine()
    assert len(engine.k_nearest("Sample text 3")) == 4
    assert len(engine.k_nearest("Sample text 3", k=9)) == 9


def test_kdtree_and_linear_agree_on_text_queries():
    engine = make_engine(n=150, leaf_size=1)
    for query in ["sample", "text 42", "completely unrelated words", "Sample text 99"]:
        kd, lin = engine.nearest(query), engine.linear_nearest(query)
        assert kd.text == lin.text or kd.distance == pytest.approx(lin.distance)


def test_compare_reports_both_indices():
    engine = make_engine()
    result = engine.compare("Sample text 5", k=3)
    assert result.agree
    assert result.kdtree.text == result.linear.text == "Sample text 5"
    assert result.kdtree_us >= 0 and result.linear_us >= 0
    assert [r.text for r in result.top_k][0] == "Sample text 5"
    assert len(result.top_k) == 3


def test_embed_uses_injected_vectorizer():
    engine = make_engine(dim=8)
    assert engine.embed("hello").shape == (8,)
    assert np.array_equal(engine.embed("hello"), engine.vectorizer.embed("hello"))


def test_empty_engine_raises():
    engine = SemanticSearch(SearchConfig(vectorizer=VectorizerConfig(dim=8))).build([])
    with pytest.raises(EmptyIndexError):
        engine.nearest("anything")


def test_dataset_dimension_must_match_vectorizer():
    engine = SemanticSearch(SearchConfig(vectorizer=VectorizerConfig(dim=8)))
    other = generate_mock_dataset(5, HashVectorizer(VectorizerConfig(dim=4)))
    with pytest.raises(DimensionMismatchError):
        engine.build(other.items)


def test_compare_accepts_any_neighbor_index_as_reference():
    engine = make_engine(n=40, dim=16)
    engine.linear = KDTreeIndex(leaf_size=8, dim=16).build(engine.tree.dataset)
    result = engine.compare("Sample text 11", k=2)
    assert result.agree
    assert result.linear.text == "Sample text 11"
