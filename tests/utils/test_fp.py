from src.utils.fp import count, group_by, unique_stable

def test_count_consumes_lazily():
    assert count(x for x in range(7)) == 7
    assert count([]) == 0
    assert count(iter("abc")) == 3

def test_unique_stable_keeps_first_seen_order():
    assert unique_stable([3, 1, 3, 2, 1]) == [3, 1, 2]

def test_group_by_preserves_arrival_order():
    items = [("a", 1), ("b", 2), ("a", 3), ("b", 4), ("a", 5)]
    g = group_by(lambda kv: kv[0], items)
    assert g["a"] == [("a", 1), ("a", 3), ("a", 5)]
    assert g["b"] == [("b", 2), ("b", 4)]
