from distlab.mrapps.indexer import map_func, reduce_func


def test_map_emits_each_word_once():
    kvs = map_func("doc1", "b a b c a")
    keys = [kv.key for kv in kvs]
    assert sorted(keys) == ["a", "b", "c"]
    assert len(keys) == len(set(keys))


def test_map_values_are_document_name():
    kvs = map_func("doc7", "hello there, hello")
    assert kvs
    assert {kv.value for kv in kvs} == {"doc7"}


def test_map_empty_document():
    assert map_func("doc", "123 !!") == []


def test_reduce_sorts_documents():
    assert reduce_func("w", ["d2", "d1", "d3"]) == "3 d1,d2,d3"


def test_reduce_does_not_modify_input():
    values = ["z", "a"]
    reduce_func("w", values)
    assert values == ["z", "a"]


def test_reduce_count_prefix_matches_length():
    result = reduce_func("w", ["x", "y"])
    count, names = result.split(" ", 1)
    assert int(count) == 2
    assert names.split(",") == ["x", "y"]