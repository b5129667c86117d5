"""
Unit tests for unread channel aggregation and local watermarks.
"""

import pytest

from src.comms.unread import UnreadAggregator, ViewerAccess, class_channel_id, group_channel_id
from src.comms.watermarks import ChannelWatermarks
from src.store.base import MessageView


def message(channel_id, timestamp_ms, sender_id="teacher", message_id=1):
    return MessageView(
        id=message_id,
        channel_id=channel_id,
        sender_id=sender_id,
        sender_name=sender_id,
        timestamp_ms=timestamp_ms,
    )


@pytest.fixture
def watermarks(tmp_path):
    return ChannelWatermarks(tmp_path / "seen.json")


@pytest.fixture
def student():
    return ViewerAccess(
        user_id="stu-1",
        enrolled_classes=["AP Physics"],
        group_ids={"lab-a"},
    )


class TestChannelIds:
    def test_class_slug(self):
        assert class_channel_id("AP Physics") == "class_ap_physics"
        assert class_channel_id("Forensic  Science 2") == "class_forensic_science_2"

    def test_group_id(self):
        assert group_channel_id("lab-a") == "group_lab-a"


class TestViewerAccess:
    def test_student_access(self, student):
        assert student.can_read("class_ap_physics")
        assert not student.can_read("class_chemistry")
        assert student.can_read("group_lab-a")
        assert not student.can_read("group_lab-b")
        assert student.can_read("global")

    def test_admin_reads_everything(self):
        admin = ViewerAccess(user_id="admin", is_admin=True)

        assert admin.can_read("class_chemistry")
        assert admin.can_read("group_anything")


class TestCompute:
    def test_new_message_is_unread(self, watermarks, student):
        aggregator = UnreadAggregator(watermarks)

        assert aggregator.compute([message("class_ap_physics", 1_000)], student) == {"class_ap_physics"}

    def test_skips_own_and_channelless_messages(self, watermarks, student):
        aggregator = UnreadAggregator(watermarks)
        messages = [
            message("class_ap_physics", 1_000, sender_id="stu-1"),
            message(None, 2_000),
            message("", 3_000),
        ]

        assert aggregator.compute(messages, student) == set()

    def test_skips_inaccessible_channels(self, watermarks, student):
        aggregator = UnreadAggregator(watermarks)
        messages = [message("class_chemistry", 1_000), message("group_lab-b", 1_000)]

        assert aggregator.compute(messages, student) == set()

    def test_watermark_hides_older_messages(self, watermarks, student):
        watermarks.mark("class_ap_physics", 5_000)
        aggregator = UnreadAggregator(watermarks)

        assert aggregator.compute([message("class_ap_physics", 5_000)], student) == set()
        assert aggregator.compute([message("class_ap_physics", 5_001)], student) == {"class_ap_physics"}

    def test_recomputed_from_scratch(self, watermarks, student):
        aggregator = UnreadAggregator(watermarks)
        aggregator.compute([message("group_lab-a", 1_000)], student)

        assert aggregator.compute([message("class_ap_physics", 1_000)], student) == {"class_ap_physics"}

    def test_on_change_receives_copy(self, watermarks, student):
        seen = []
        aggregator = UnreadAggregator(watermarks, on_change=seen.append)

        aggregator.compute([message("global", 1_000)], student)

        assert seen == [{"global"}]


class TestMarkRead:
    def test_round_trip(self, tmp_path, student, clock):
        path = tmp_path / "seen.json"
        aggregator = UnreadAggregator(ChannelWatermarks(path), clock=clock)
        aggregator.compute([message("class_ap_physics", clock.now - 10)], student)

        aggregator.mark_read("class_ap_physics")

        assert aggregator.unread == set()

        # A fresh device session loads the persisted watermark.
        reloaded = UnreadAggregator(ChannelWatermarks(path), clock=clock)
        assert reloaded.compute([message("class_ap_physics", clock.now - 10)], student) == set()
        assert reloaded.compute([message("class_ap_physics", clock.now + 1)], student) == {
            "class_ap_physics"
        }

    def test_mark_unknown_channel_persists(self, watermarks):
        aggregator = UnreadAggregator(watermarks)

        aggregator.mark_read("global", now_ms=42)

        assert watermarks.get("global") == 42


class TestWatermarks:
    def test_missing_file_means_never_seen(self, tmp_path):
        assert ChannelWatermarks(tmp_path / "absent.json").get("global") == 0

    def test_corrupt_file_is_ignored(self, tmp_path):
        path = tmp_path / "seen.json"
        path.write_text("{not json", encoding="utf-8")

        assert ChannelWatermarks(path).as_dict() == {}

    def test_non_numeric_entries_dropped(self, tmp_path):
        path = tmp_path / "seen.json"
        path.write_text('{"global": 10, "class_x": "soon", "group_y": true}', encoding="utf-8")

        assert ChannelWatermarks(path).as_dict() == {"global": 10}
