"""Domain value objects: stream title parsing and string similarity."""

from radiosync.domain.value_objects.similarity import (
    SimilarityMetric,
    combined_score,
    dice_coefficient,
    indel_similarity,
    normalize_for_matching,
    similarity,
)
from radiosync.domain.value_objects.stream_title import (
    STREAM_TITLE_KEY,
    parse_icy_metadata,
    parse_stream_title,
)

__all__ = [
    "STREAM_TITLE_KEY",
    "SimilarityMetric",
    "combined_score",
    "dice_coefficient",
    "indel_similarity",
    "normalize_for_matching",
    "parse_icy_metadata",
    "parse_stream_title",
    "similarity",
]
