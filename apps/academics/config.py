# academics/config.py

"""
Immutable scoring configuration handed to the pure scoring functions.

A ``ScoringConfig`` is built once per aggregation call from a SchoolYear
(``SchoolYear.get_scoring_config()``) or from ``settings.GRADING_DEFAULTS``
(``ScoringConfig.from_defaults()``). Nothing in grading/ or summaries/utils
reads a model or a setting directly.
"""

from dataclasses import dataclass, field
from typing import Tuple
import copy

from django.conf import settings

QUALITY_TIERS = ('excellent', 'good', 'average', 'poor', 'failing')


@dataclass(frozen=True)
class AcademicCoefficients:
    excellent: int = 20
    good: int = 10
    average: int = 0
    poor: int = -10
    failing: int = -20

    def for_tier(self, tier):
        if tier not in QUALITY_TIERS:
            raise KeyError(tier)
        return getattr(self, tier)

    def as_dict(self):
        return {tier: getattr(self, tier) for tier in QUALITY_TIERS}


@dataclass(frozen=True)
class BonusConfiguration:
    good_day_bonus: int = 20
    good_week_bonus: int = 0
    # Good days needed before good_week_bonus is added to a weekly summary
    good_week_min_days: int = 4


@dataclass(frozen=True)
class ClassificationThresholds:
    red: int = 90
    green: int = 70
    yellow: int = 50


@dataclass(frozen=True)
class ConductItem:
    name: str
    applicable_days: Tuple[int, ...]
    order: int = 0


@dataclass(frozen=True)
class ConductConfiguration:
    max_points_per_item: int = 5
    days_per_week: int = 5
    items: Tuple[ConductItem, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class ScoringConfig:
    """Everything a scorer or aggregator needs to know about one school year."""

    coefficients: AcademicCoefficients = field(default_factory=AcademicCoefficients)
    bonuses: BonusConfiguration = field(default_factory=BonusConfiguration)
    thresholds: ClassificationThresholds = field(default_factory=ClassificationThresholds)
    conduct: ConductConfiguration = field(default_factory=ConductConfiguration)

    @classmethod
    def from_values(cls, coefficients=None, bonuses=None, thresholds=None, conduct=None):
        """
        Build a config from plain dicts, e.g. the sections of GRADING_DEFAULTS.

        Missing sections or keys fall back to the dataclass defaults.
        """
        conduct = dict(conduct or {})
        items = tuple(
            ConductItem(
                name=item['name'],
                applicable_days=tuple(item.get('applicable_days', ())),
                order=item.get('order', index + 1),
            )
            for index, item in enumerate(conduct.pop('items', []) or [])
        )
        return cls(
            coefficients=AcademicCoefficients(**(coefficients or {})),
            bonuses=BonusConfiguration(**(bonuses or {})),
            thresholds=ClassificationThresholds(**(thresholds or {})),
            conduct=ConductConfiguration(items=items, **conduct),
        )

    @classmethod
    def from_defaults(cls):
        defaults = get_grading_defaults()
        return cls.from_values(
            coefficients=defaults.get('coefficients'),
            bonuses=defaults.get('bonuses'),
            thresholds=defaults.get('thresholds'),
            conduct=defaults.get('conduct'),
        )


def get_grading_defaults():
    """
    Deep copy of ``settings.GRADING_DEFAULTS``.

    Returns a copy so callers can store pieces on a model without
    aliasing the settings dict.
    """
    return copy.deepcopy(getattr(settings, 'GRADING_DEFAULTS', {}))
