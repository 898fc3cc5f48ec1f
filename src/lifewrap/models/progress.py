"""Models describing structured summarization output."""

from __future__ import annotations

from typing import List

from pydantic import Field

from lifewrap.models.base import LifeWrapBaseModel


class SummaryOutput(LifeWrapBaseModel):
    """Structured payload returned by session summarization workflows."""

    summary_text: str
    topics: List[str] = Field(default_factory=list)
    entities: List[str] = Field(default_factory=list)
    key_moments: List[str] = Field(default_factory=list)


class YearWrapOutput(LifeWrapBaseModel):
    """Structured payload returned by the year wrap workflow.

    Beyond the narrative ``summary_text`` the model extracts the year's arcs, wins, losses,
    people and places. Classified items are prefixed with ``work:``, ``personal:`` or ``both:``
    when category context was supplied.
    """

    summary_text: str
    major_arcs: List[str] = Field(default_factory=list)
    biggest_wins: List[str] = Field(default_factory=list)
    biggest_losses: List[str] = Field(default_factory=list)
    key_people: List[str] = Field(default_factory=list)
    places: List[str] = Field(default_factory=list)
    topics: List[str] = Field(default_factory=list)


__all__ = ["SummaryOutput", "YearWrapOutput"]
