"""Tests for AI parent suggestion fallbacks."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from sdm_kms.llm.client import Generation
from sdm_kms.models import ROOT
from sdm_kms.wiki.suggest import suggest_parent

CANDIDATES = [ROOT, "Power", "Control"]


def _reply(parent: str, reasoning: str = "fits") -> Generation:
    return Generation(json.dumps({"suggestedParent": parent, "reasoning": reasoning}), "stop")


@pytest.mark.asyncio
async def test_too_few_candidates_skips_the_model():
    mock = AsyncMock()
    with patch("sdm_kms.wiki.suggest.client.generate", mock):
        result = await suggest_parent("Battery", "stores energy", [ROOT])
    assert result.parent == ROOT
    mock.assert_not_called()


@pytest.mark.asyncio
async def test_returns_existing_candidate():
    with patch("sdm_kms.wiki.suggest.client.generate", AsyncMock(return_value=_reply("Power"))):
        result = await suggest_parent("Battery", "stores energy", CANDIDATES)
    assert result.parent == "Power"
    assert result.rationale == "fits"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "reply",
    [
        Generation(None, "length"),
        Generation("{not json", "stop"),
        _reply("Hydraulics"),
        _reply("Battery"),
    ],
    ids=["empty", "malformed", "unknown-node", "self"],
)
async def test_unusable_replies_fall_back_to_root(reply):
    with patch("sdm_kms.wiki.suggest.client.generate", AsyncMock(return_value=reply)):
        result = await suggest_parent("Battery", "stores energy", CANDIDATES + ["Battery"])
    assert result.parent == ROOT


@pytest.mark.asyncio
async def test_transport_error_falls_back_to_root():
    mock = AsyncMock(side_effect=RuntimeError("quota"))
    with patch("sdm_kms.wiki.suggest.client.generate", mock):
        result = await suggest_parent("Battery", "stores energy", CANDIDATES)
    assert result.parent == ROOT
    assert "Error" in result.rationale
