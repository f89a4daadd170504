from agenda_engine.core.overlap_layout import TimedItemLayoutInput, assign_overlap_layout


def _layout(*entries: tuple[str, int, int]) -> dict:
    result = assign_overlap_layout([TimedItemLayoutInput(item=name, start_minute=s, duration_minutes=d) for name, s, d in entries])
    return {entry.item: (entry.overlap_index, entry.overlap_count) for entry in result}


def test_empty_input() -> None:
    assert assign_overlap_layout([]) == []


def test_touching_item_starts_new_cluster() -> None:
    layout = _layout(("A", 540, 60), ("B", 570, 60), ("C", 630, 30))
    assert layout["A"] == (0, 2)
    assert layout["B"] == (1, 2)
    assert layout["C"] == (0, 1)


def test_isolated_item_gets_single_column() -> None:
    layout = _layout(("solo", 600, 45))
    assert layout["solo"] == (0, 1)


def test_freed_column_is_reused_inside_cluster() -> None:
    layout = _layout(("A", 0, 60), ("B", 30, 60), ("C", 70, 30))
    assert layout["A"] == (0, 2)
    assert layout["B"] == (1, 2)
    assert layout["C"] == (0, 2)


def test_overlapping_items_never_share_a_column() -> None:
    layout = _layout(("A", 60, 120), ("B", 90, 30), ("C", 100, 60), ("D", 95, 10))
    assert {index for index, _ in layout.values()} == {0, 1, 2, 3}
    assert {count for _, count in layout.values()} == {4}


def test_input_order_does_not_matter() -> None:
    forward = _layout(("A", 540, 60), ("B", 570, 60), ("C", 630, 30))
    backward = _layout(("C", 630, 30), ("B", 570, 60), ("A", 540, 60))
    assert forward == backward
