# santa_room/core/derangement.py
import random
from typing import Hashable, Iterable, NamedTuple, Optional, Sequence

from .errors import ConstraintUnsatisfiable, InsufficientParticipants

MAX_ATTEMPTS = 2000


class Pair(NamedTuple):
    giver: Hashable
    receiver: Hashable


def _single_cycle(order: Sequence[Hashable]) -> list[Pair]:
    # i 番目 → (i+1) mod n 番目。n >= 2 なので自分自身には当たらない
    n = len(order)
    return [Pair(order[i], order[(i + 1) % n]) for i in range(n)]


def generate(
    participants: Sequence[Hashable],
    exclusions: Iterable[tuple[Hashable, Hashable]] = (),
    attempts: int = MAX_ATTEMPTS,
    rng: Optional[random.Random] = None,
) -> list[Pair]:
    """
    参加者全員を 1 本の輪でつなぐ割り当てを作る。

    - シャッフル（Fisher-Yates）した順に隣へ渡すので、必ず不動点のない置換になる
    - 除外ペア (giver, receiver) を含む輪は捨てて引き直す
    - attempts 回引いても見つからなければ ConstraintUnsatisfiable

    一様なのは「単一サイクルの割り当て」の中だけで、全ての完全順列に対して
    一様ではない。
    """
    people = list(participants)
    if len(people) < 2:
        raise InsufficientParticipants("At least 2 participants are needed to draw")
    if len(set(people)) != len(people):
        raise ValueError("participants must be distinct")

    forbidden = {(g, r) for g, r in exclusions}
    rng = rng or random.Random()

    for _ in range(attempts):
        rng.shuffle(people)
        pairs = _single_cycle(people)
        if not any((p.giver, p.receiver) in forbidden for p in pairs):
            return pairs

    raise ConstraintUnsatisfiable()
