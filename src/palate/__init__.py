"""Palate Collectif - wine tasting events, ratings and shared tasting notes."""

from palate.analytics import event_analytics, rating_distribution, top_wines
from palate.similarity import calculate_similarity, find_potential_duplicates
from palate.taste_profile import TasteProfile, build_taste_profile

__version__ = "0.1.0"

__all__ = [
    'build_taste_profile',
    'TasteProfile',
    'calculate_similarity',
    'find_potential_duplicates',
    'event_analytics',
    'rating_distribution',
    'top_wines',
    '__version__',
]
