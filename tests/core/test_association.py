import pytest

from deskwatch.core.analytics.association import associate_heads
from deskwatch.core.types import Box, Detection, DetectionClass


def _person(x1, y1, x2, y2, conf=0.9):
    return Detection(cls=DetectionClass.PERSON, box=Box.from_xyxy(x1, y1, x2, y2), confidence=conf)


def _head(x1, y1, x2, y2, conf=0.9):
    return Detection(cls=DetectionClass.HEAD, box=Box.from_xyxy(x1, y1, x2, y2), confidence=conf)


def test_no_persons_gives_no_associations():
    assert associate_heads([], [_head(0, 0, 10, 10)]) == []


def test_persons_without_heads_are_unmatched():
    persons = [_person(0, 0, 100, 100), _person(200, 0, 300, 100)]
    out = associate_heads(persons, [])
    assert [a.head for a in out] == [None, None]
    assert [a.person for a in out] == persons


def test_head_matched_above_threshold():
    person = _person(0, 0, 100, 100)
    head = _head(0, 0, 50, 50)
    (assoc,) = associate_heads([person], [head], 0.1)
    assert assoc.head is head
    assert assoc.iou == pytest.approx(0.25)


def test_iou_equal_to_threshold_is_not_matched():
    person = _person(0, 0, 100, 100)
    head = _head(0, 0, 50, 50)
    (assoc,) = associate_heads([person], [head], 0.25)
    assert assoc.head is None


def test_each_head_is_claimed_once_in_person_order():
    p1 = _person(0, 0, 100, 100)
    p2 = _person(0, 0, 100, 100)
    head = _head(0, 0, 60, 60)
    out = associate_heads([p1, p2], [head], 0.1)
    assert out[0].head is head
    assert out[1].head is None


def test_second_person_takes_next_best_head():
    p1 = _person(0, 0, 100, 100)
    p2 = _person(0, 0, 100, 100)
    h_big = _head(0, 0, 60, 60)
    h_small = _head(0, 0, 40, 40)
    out = associate_heads([p1, p2], [h_small, h_big], 0.1)
    assert out[0].head is h_big
    assert out[1].head is h_small


def test_tied_heads_go_to_lowest_index():
    person = _person(0, 0, 100, 100)
    h1 = _head(0, 0, 50, 50)
    h2 = _head(50, 50, 100, 100)
    (assoc,) = associate_heads([person], [h1, h2], 0.1)
    assert assoc.head is h1


def test_inputs_are_not_modified():
    persons = [_person(0, 0, 100, 100)]
    heads = [_head(0, 0, 50, 50), _head(500, 500, 510, 510)]
    before = list(heads)
    associate_heads(persons, heads)
    assert heads == before
