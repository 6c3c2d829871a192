"""
Question bank access.

Draws either a random sample of active questions or the exact question set of
an exam configuration, and freezes the result into plain dict snapshots. A
session only ever sees the snapshot, so editing or deactivating a question
afterwards cannot change an in-progress or finished attempt.
"""
import logging
import random

from .models import Question

logger = logging.getLogger(__name__)

_system_random = random.SystemRandom()


def sample_ids(ids, sample_size, rng=None):
    """
    Unbiased sample: Fisher-Yates shuffle of a copy (random.shuffle), then
    truncate to min(sample_size, len(ids)).
    """
    rng = rng or _system_random
    pool = list(ids)
    rng.shuffle(pool)
    return pool[:max(0, min(sample_size, len(pool)))]


def freeze(questions):
    return [q.snapshot() for q in questions]


def draw_random(sample_size, rng=None):
    """Random draw over the active bank, returned as frozen snapshots."""
    ids = list(Question.objects.filter(is_active=True).values_list('id', flat=True))
    chosen = sample_ids(ids, sample_size, rng=rng)
    if len(chosen) < sample_size:
        logger.warning(f"Question bank holds {len(ids)} active questions, fewer than the {sample_size} requested")

    by_id = Question.objects.prefetch_related('options').in_bulk(chosen)
    # Keep the shuffled order, not the database order
    return freeze(by_id[pk] for pk in chosen)


def draw_assigned(configuration):
    """Exactly the configuration's questions, in configuration order."""
    return freeze(configuration.ordered_questions())
