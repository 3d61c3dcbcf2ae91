"""
Unit tests for submission ids and booking ids.
"""
import re

import pytest

from confdesk.core.ids import category_prefix, new_booking_id, next_submission_id
from confdesk.models.paper import PaperSubmission


@pytest.mark.parametrize(
    "category, prefix",
    [
        ("Computer Networks", "CO"),
        ("machine learning", "MA"),
        ("5G Systems", "GX"),
        ("", "XX"),
        ("Q", "QX"),
    ],
)
def test_category_prefix(category, prefix):
    assert category_prefix(category) == prefix


def test_booking_id_format():
    ids = {new_booking_id() for _ in range(20)}
    assert all(re.fullmatch(r"BK\d{11}", b) for b in ids)


async def _paper(submission_id: str) -> PaperSubmission:
    return await PaperSubmission.create(
        submission_id=submission_id,
        title="T",
        author_name="A",
        email=f"{submission_id.lower()}@example.com",
        category="Computer Networks",
    )


@pytest.mark.asyncio
async def test_first_submission_id(db):
    assert await next_submission_id("Computer Networks") == "CO001"


@pytest.mark.asyncio
async def test_next_submission_id_follows_highest(db):
    await _paper("CO001")
    await _paper("CO007")
    await _paper("MA042")
    assert await next_submission_id("Computer Networks") == "CO008"
    assert await next_submission_id("Machine Learning") == "MA043"
