# tests/test_derangement.py
import random

import pytest

from santa_room.core.derangement import generate
from santa_room.core.errors import ConstraintUnsatisfiable, InsufficientParticipants


def _check_derangement(people, pairs):
    givers = [p.giver for p in pairs]
    receivers = [p.receiver for p in pairs]
    assert sorted(givers) == sorted(people)
    assert sorted(receivers) == sorted(people)
    assert all(p.giver != p.receiver for p in pairs)


@pytest.mark.parametrize("n", range(2, 12))
def test_no_exclusions_gives_permutation_without_fixed_point(n):
    people = [f"P{i}" for i in range(n)]
    rng = random.Random(n)
    for _ in range(20):
        _check_derangement(people, generate(people, rng=rng))


def test_result_is_a_single_cycle():
    people = list("ABCDEFG")
    pairs = generate(people, rng=random.Random(1))
    nxt = {p.giver: p.receiver for p in pairs}

    seen = ["A"]
    while nxt[seen[-1]] != "A":
        seen.append(nxt[seen[-1]])
    assert len(seen) == len(people)


def test_two_participants_swap():
    pairs = generate(["A", "B"])
    assert set(pairs) == {("A", "B"), ("B", "A")}


def test_exclusions_are_respected():
    people = ["Mom", "Dad", "Kid1", "Kid2", "Aunt"]
    exclusions = {("Dad", "Mom"), ("Mom", "Dad"), ("Kid1", "Kid2")}
    rng = random.Random(7)
    for _ in range(50):
        pairs = generate(people, exclusions, rng=rng)
        _check_derangement(people, pairs)
        assert not {(p.giver, p.receiver) for p in pairs} & exclusions


def test_every_cycle_edge_forbidden_is_unsatisfiable():
    people = ["A", "B", "C"]
    everything = {(g, r) for g in people for r in people if g != r}
    with pytest.raises(ConstraintUnsatisfiable):
        generate(people, everything, attempts=50)


def test_one_person_excluded_from_everyone_is_unsatisfiable():
    people = ["A", "B", "C", "D"]
    # A には誰も贈れない
    exclusions = {(g, "A") for g in people if g != "A"}
    with pytest.raises(ConstraintUnsatisfiable):
        generate(people, exclusions, attempts=200)


def test_fewer_than_two_participants():
    with pytest.raises(InsufficientParticipants):
        generate(["A"])
    with pytest.raises(InsufficientParticipants):
        generate([])


def test_duplicate_participants_rejected():
    with pytest.raises(ValueError):
        generate(["A", "A", "B"])


def test_input_list_is_not_shuffled_in_place():
    people = ["A", "B", "C", "D"]
    generate(people, rng=random.Random(3))
    assert people == ["A", "B", "C", "D"]


def test_same_seed_same_draw():
    people = list("ABCDEF")
    assert generate(people, rng=random.Random(42)) == generate(people, rng=random.Random(42))
