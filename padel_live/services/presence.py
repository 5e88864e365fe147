"""Per-pair presence counts for a scheduled match."""
from collections import namedtuple

PLAYERS_PER_PAIR = 2

PresenceSummary = namedtuple('PresenceSummary', 'pair1_present pair2_present')


def summarize(match, players):
    pair1_present = sum(1 for p in players if p.pair_id == match.pair1_id and p.is_present is True)
    pair2_present = sum(1 for p in players if p.pair_id == match.pair2_id and p.is_present is True)
    return PresenceSummary(pair1_present, pair2_present)


def pair1_confirmed(summary):
    return summary.pair1_present == PLAYERS_PER_PAIR


def pair2_confirmed(summary):
    return summary.pair2_present == PLAYERS_PER_PAIR


def all_present(summary):
    return pair1_confirmed(summary) and pair2_confirmed(summary)
