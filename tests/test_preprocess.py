from kdsearch.preprocess import Tokenizer, tokenize


def test_tokenize_strips_punctuation_and_lowercases():
    tokens = tokenize("Hello, World!  foo-bar\t42\nEND.")
    assert tokens == ["hello", "world", "foobar", "42", "end"]


def test_tokenize_drops_empty_tokens():
    assert tokenize("  ... !!! ,, ") == []
    assert tokenize("") == []


def test_tokenize_keeps_ascii_only():
    # non-ASCII letters are not alphanumeric for the vectorizer
    assert Tokenizer().tokenize("Café naïve") == ["caf", "nave"]


def test_tokenize_preserves_order_and_duplicates():
    assert tokenize("b a b") == ["b", "a", "b"]


if __name__ == "__main__":
    for t in tokenize("The happy cats are running joyfully in the garden!"):
        print(t)
