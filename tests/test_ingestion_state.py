from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from aicon_backend.core.errors import InvalidTransition
from aicon_backend.core.ingestion import (
    AnalyzedState,
    AnalyzingState,
    IdleState,
    ScrapeFailedState,
    ScrapingState,
    check_transition,
    read_state,
    state_metadata,
)


def test_terminal_states_only_reset_to_idle():
    analyzed = AnalyzedState(scrape_id="s")
    with pytest.raises(InvalidTransition):
        check_transition(analyzed, ScrapingState())
    assert check_transition(analyzed, IdleState()).status == "idle"


def test_cannot_skip_scraping():
    with pytest.raises(InvalidTransition):
        check_transition(IdleState(), AnalyzingState(scrape_id="s"))


def test_state_round_trips_through_metadata():
    fragment = state_metadata(ScrapeFailedState(error="Scraping timeout", scrape_id="s-9"))

    assert fragment["isScraping"] is False
    assert fragment["scrapingError"] == "Scraping timeout"
    assert fragment["scrapeId"] == "s-9"
    state = read_state(fragment)
    assert state.status == "scrape_failed"
    assert state.error == "Scraping timeout"


def test_flags_without_recorded_state_are_understood():
    assert read_state({"isScraping": True}).status == "scraping"
    assert read_state({"isAnalyzed": True, "scrapeId": 7}).status == "analyzed"
    assert read_state({"analysisError": "x", "scrapeId": "s"}).status == "analysis_failed"
    assert read_state({}).status == "idle"
    assert read_state(None).status == "idle"


def test_flags_are_mutually_exclusive():
    for state in (ScrapingState(), AnalyzingState(scrape_id="s"), AnalyzedState(scrape_id="s")):
        fragment = state_metadata(state)
        assert [fragment["isScraping"], fragment["isAnalyzing"], fragment["isAnalyzed"]].count(True) == 1
