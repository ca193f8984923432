import json

import pytest

from kdsearch.config import SearchConfig


def test_defaults():
    cfg = SearchConfig()
    assert cfg.vectorizer.dim == 384
    assert cfg.vectorizer.seed == 42
    assert cfg.index.leaf_size == 1


def test_load_yaml(tmp_path):
    path = tmp_path / "search.yaml"
    path.write_text(
        "vectorizer:\n"
        "  dim: 64\n"
        "index:\n"
        "  leaf_size: 10\n"
        "benchmark:\n"
        "  leaf_sizes: [1, 5]\n"
        "debug: true\n"
    )
    cfg = SearchConfig.load(path)
    assert cfg.vectorizer.dim == 64
    assert cfg.vectorizer.seed == 42
    assert cfg.index.leaf_size == 10
    assert cfg.benchmark.leaf_sizes == [1, 5]
    assert cfg.debug is True


def test_load_json_round_trip(tmp_path):
    cfg = SearchConfig()
    cfg.loader.max_lines = 500
    path = tmp_path / "search.json"
    path.write_text(json.dumps(cfg.to_dict()))
    assert SearchConfig.load(path) == cfg


def test_empty_yaml_gives_defaults(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("")
    assert SearchConfig.load(path) == SearchConfig()


def test_unknown_key_is_rejected():
    with pytest.raises(TypeError):
        SearchConfig.from_mapping({"index": {"leaf": 3}})
