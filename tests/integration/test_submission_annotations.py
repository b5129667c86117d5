"""
Integration tests for admin annotations on submissions.
"""

import pytest


@pytest.fixture
def seed(store, student, engagement, make_metrics):
    async def _seed():
        ids = []
        for resource in ("res-1", "res-1"):
            receipt = await engagement.submit_engagement(
                "stu-1", "Ada", resource, "Lesson", make_metrics(engagement_time=600, keystrokes=800), "AP Physics"
            )
            ids.append(receipt.submission_id if receipt else None)
            engagement.clock.advance(300_000)
        return ids

    return _seed


class TestAnnotations:
    @pytest.mark.asyncio
    async def test_pinned_listed_first(self, store, seed):
        first, second = await seed()

        assert await store.set_pinned(first, True) is True

        rows = await store.list_submissions(assignment_id="res-1")
        assert [r.id for r in rows] == [first, second]
        assert rows[0].is_pinned is True

    @pytest.mark.asyncio
    async def test_archived_hidden_by_default(self, store, seed):
        first, second = await seed()

        await store.set_archived(second, True)

        assert [r.id for r in await store.list_submissions(assignment_id="res-1")] == [first]
        everything = await store.list_submissions(assignment_id="res-1", include_archived=True)
        assert {r.id for r in everything} == {first, second}

    @pytest.mark.asyncio
    async def test_private_comments(self, store, seed):
        first, _ = await seed()

        await store.add_private_comment(first, "teacher", "Ms. Curie", "Nice derivation", True)
        await store.add_private_comment(first, "stu-1", "Ada", "Thanks!", False)

        rows = await store.list_submissions(user_id="stu-1")
        row = next(r for r in rows if r.id == first)
        assert [c.content for c in row.comments] == ["Nice derivation", "Thanks!"]
        assert row.comments[0].is_admin is True

    @pytest.mark.asyncio
    async def test_annotations_leave_classification_alone(self, store, seed):
        first, _ = await seed()
        before = next(r for r in await store.list_submissions() if r.id == first)

        await store.set_pinned(first, True)
        await store.add_private_comment(first, "teacher", "Ms. Curie", "Seen", True)

        after = next(r for r in await store.list_submissions() if r.id == first)
        assert (after.status, after.score) == (before.status, before.score)

    @pytest.mark.asyncio
    async def test_missing_submission(self, store):
        assert await store.set_pinned(999, True) is False
        assert await store.add_private_comment(999, "t", "T", "hello", True) is None
