# Storefront Matching Orchestration
# Config, cache, grouping, decisions and the decision report

from .config import ConfigManager
from .cache import ResultCache
from .report import Action, DecisionRecord, Field, ReportLog
from .grouping import ArtistPolicy, GroupingPolicy, GroupKey, SiblingIndex, TrackGroup, group_tracks
from .decision import (
    ConsolePrompter,
    DecisionEngine,
    DecisionMode,
    Prompter,
    PromptSession,
    Resolution,
    ResolutionAction,
    parse_correction
)

__all__ = [
    'ConfigManager',
    'ResultCache',
    'Action',
    'DecisionRecord',
    'Field',
    'ReportLog',
    'ArtistPolicy',
    'GroupingPolicy',
    'GroupKey',
    'SiblingIndex',
    'TrackGroup',
    'group_tracks',
    'ConsolePrompter',
    'DecisionEngine',
    'DecisionMode',
    'Prompter',
    'PromptSession',
    'Resolution',
    'ResolutionAction',
    'parse_correction'
]
