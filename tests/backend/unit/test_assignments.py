"""
Unit tests for versioned writes to a paper's assignment lists.
"""
import pytest

from confdesk.core.errors import ApiError
from confdesk.core.workflow import PaperStatus
from confdesk.models.paper import AssignmentStatus, PaperSubmission
from confdesk.services.assignments import all_submitted, completion_status, versioned_update


async def _paper() -> PaperSubmission:
    return await PaperSubmission.create(
        submission_id="CO001",
        title="T",
        author_name="A",
        email="a@example.com",
        category="Computer Networks",
        status=PaperStatus.UNDER_REVIEW,
    )


def _append(reviewer: str):
    def mutate(p: PaperSubmission) -> dict:
        return {"review_assignments": list(p.review_assignments) + [{"reviewer": reviewer, "status": "Pending"}]}
    return mutate


@pytest.mark.asyncio
async def test_versioned_update_bumps_row_version(db):
    paper = await _paper()
    updated = await versioned_update(paper.id, _append("r1"))
    assert updated.row_version == 1

    stored = await PaperSubmission.get(id=paper.id)
    assert stored.row_version == 1
    assert [a["reviewer"] for a in stored.review_assignments] == ["r1"]


@pytest.mark.asyncio
async def test_no_change_skips_the_write(db):
    paper = await _paper()
    result = await versioned_update(paper.id, lambda p: None)
    assert result.row_version == 0


class _Snapshot:
    """Query stand-in that serves a previously loaded row."""

    def __init__(self, paper: PaperSubmission):
        self.paper = paper

    def using_db(self, _db):
        return self

    async def first(self):
        return self.paper


@pytest.mark.asyncio
async def test_stale_write_is_recomputed_from_fresh_state(db, monkeypatch):
    paper = await _paper()
    stale = await PaperSubmission.get(id=paper.id)

    # Another request commits after our read
    await versioned_update(paper.id, _append("r1"))

    original_filter = PaperSubmission.filter
    reads = {"n": 0}

    def filter_serving_stale_first(*args, **kwargs):
        if "row_version" not in kwargs:
            reads["n"] += 1
            if reads["n"] == 1:
                return _Snapshot(stale)
        return original_filter(*args, **kwargs)

    monkeypatch.setattr(PaperSubmission, "filter", filter_serving_stale_first)

    seen_versions = []

    def mutate(p: PaperSubmission) -> dict:
        seen_versions.append(p.row_version)
        return _append("r2")(p)

    result = await versioned_update(paper.id, mutate)
    monkeypatch.undo()

    assert seen_versions == [0, 1]
    stored = await PaperSubmission.get(id=paper.id)
    assert [a["reviewer"] for a in stored.review_assignments] == ["r1", "r2"]
    assert result.row_version == stored.row_version == 2


@pytest.mark.asyncio
async def test_exhausted_retries_raise_conflict(db, monkeypatch):
    paper = await _paper()
    original_filter = PaperSubmission.filter

    def always_stale(*args, **kwargs):
        if "row_version" in kwargs:
            return original_filter(id=kwargs["id"], row_version=-1)
        return original_filter(*args, **kwargs)

    monkeypatch.setattr(PaperSubmission, "filter", always_stale)
    with pytest.raises(ApiError) as exc:
        await versioned_update(paper.id, _append("r1"), attempts=3)
    assert exc.value.status_code == 409


@pytest.mark.asyncio
async def test_missing_paper_is_404(db):
    import uuid
    with pytest.raises(ApiError) as exc:
        await versioned_update(uuid.uuid4(), _append("r1"))
    assert exc.value.status_code == 404


def test_completion_status():
    done = [{"status": AssignmentStatus.SUBMITTED}, {"status": AssignmentStatus.SUBMITTED}]
    half = [{"status": AssignmentStatus.SUBMITTED}, {"status": AssignmentStatus.ACCEPTED}]
    assert all_submitted(done)
    assert not all_submitted(half)
    assert not all_submitted([])
    assert completion_status(PaperStatus.UNDER_REVIEW, done) == PaperStatus.REVIEW_RECEIVED
    assert completion_status(PaperStatus.UNDER_REVIEW, half) == PaperStatus.UNDER_REVIEW
    assert completion_status(PaperStatus.REVISED_SUBMITTED, done) == PaperStatus.REVISED_SUBMITTED
