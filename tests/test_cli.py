import io
import json
import struct

from kdsearch.cli import interactive, main
from kdsearch.config import SearchConfig, VectorizerConfig
from kdsearch.datasets import generate_mock_dataset, load_snapshot, save_snapshot
from kdsearch.embedding import HashVectorizer
from kdsearch.search import SemanticSearch


def write_config(tmp_path, **benchmark):
    lines = ["vectorizer:", "  dim: 16", "loader:", "  mock_size: 40", "benchmark:", f"  output_dir: {tmp_path}"]
    lines += [f"  {k}: {v}" for k, v in benchmark.items()]
    path = tmp_path / "cfg.yaml"
    path.write_text("\n".join(lines) + "\n")
    return str(path)


def test_single_query_on_mock_data(tmp_path, capsys):
    code = main(["--config", write_config(tmp_path), "--query", "Sample text 7", "--top-k", "3"])
    assert code == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["kdtree"]["text"] == "Sample text 7"
    assert payload["linear"]["text"] == "Sample text 7"
    assert payload["agree"] is True
    assert len(payload["top_k"]) == 3


def test_markdown_output(tmp_path, capsys):
    code = main(["--config", write_config(tmp_path), "--query", "Sample text 2", "--markdown"])
    assert code == 0
    out = capsys.readouterr().out
    assert "### Query: Sample text 2" in out
    assert "| KD-tree |" in out


def test_jsonl_input_is_saved_as_snapshot(tmp_path, capsys):
    data = tmp_path / "corpus.jsonl"
    data.write_text('["a", "red apple"]\n["b", "green pear"]\nbroken\n["c", "blue berry"]\n')
    snapshot = tmp_path / "out" / "db.bin"
    code = main(
        [str(data), "--config", write_config(tmp_path), "--snapshot-out", str(snapshot), "--query", "green pear"]
    )
    assert code == 0
    assert json.loads(capsys.readouterr().out)["kdtree"]["text"] == "green pear"
    loaded = load_snapshot(snapshot)
    assert [i.text for i in loaded.items] == ["red apple", "green pear", "blue berry"]
    assert loaded.processed_lines == 4


def test_missing_file_falls_back_to_mock(tmp_path, capsys):
    code = main([str(tmp_path / "missing.bin"), "--config", write_config(tmp_path), "--query", "Sample text 1"])
    assert code == 0
    assert json.loads(capsys.readouterr().out)["kdtree"]["text"] == "Sample text 1"


def test_corrupt_snapshot_falls_back_to_mock(tmp_path, capsys):
    corrupt = tmp_path / "corrupt.bin"
    corrupt.write_bytes(struct.pack("<iii", 0, 1, 2**31 - 1) + b"\x00" * 5)
    code = main([str(corrupt), "--config", write_config(tmp_path), "--query", "Sample text 3"])
    assert code == 0
    assert json.loads(capsys.readouterr().out)["kdtree"]["text"] == "Sample text 3"


def test_snapshot_dimension_mismatch_exits_nonzero(tmp_path):
    items = generate_mock_dataset(5, HashVectorizer(VectorizerConfig(dim=8))).items
    snap = save_snapshot(tmp_path / "db.bin", items)
    assert main([str(snap), "--config", write_config(tmp_path), "--query", "x"]) == 1


def test_leaf_size_experiment(tmp_path, capsys):
    cfg = write_config(tmp_path, num_queries=2, num_runs=1, query_seed=3, leaf_sizes="[1, 8]")
    assert main(["--config", cfg, "--exp-leaf-size"]) == 0
    payload = json.loads(capsys.readouterr().out)
    assert [r["leaf_size"] for r in payload["leaf_size"]] == [1, 8]
    assert (tmp_path / "leaf_size_results.csv").exists()


def test_interactive_loop_stops_on_exit_word():
    engine = SemanticSearch(SearchConfig(vectorizer=VectorizerConfig(dim=16)))
    engine.build(generate_mock_dataset(20, engine.vectorizer).items)
    stdin = io.StringIO("Sample text 4\n\n   \nSample text 9\nexit\nSample text 1\n")
    stdout = io.StringIO()
    assert interactive(engine, stdin=stdin, stdout=stdout) == 2
    assert "Sample text 9" in stdout.getvalue()


def test_interactive_loop_stops_on_eof():
    engine = SemanticSearch(SearchConfig(vectorizer=VectorizerConfig(dim=16)))
    engine.build(generate_mock_dataset(5, engine.vectorizer).items)
    assert interactive(engine, stdin=io.StringIO("Sample text 0"), stdout=io.StringIO()) == 1


def test_interactive_loop_accepts_short_exit_words():
    engine = SemanticSearch(SearchConfig(vectorizer=VectorizerConfig(dim=16)))
    engine.build(generate_mock_dataset(5, engine.vectorizer).items)
    for word in ("quit", "Q"):
        stdin = io.StringIO(f"Sample text 2\n{word}\nSample text 3\n")
        assert interactive(engine, stdin=stdin, stdout=io.StringIO()) == 1
