"""
Unit tests for review-question bank validation.
"""

from src.rewards.questions import BankQuestion, validate_question_bank


class TestValidateQuestionBank:
    def test_valid_bank(self, sample_bank):
        result = validate_question_bank(sample_bank)

        assert [q.id for q in result.questions] == ["t1q001", "t2q001"]
        assert result.rejected == []
        assert result.tiers == {1: 1, 2: 1}

    def test_missing_fields_rejected(self, sample_bank):
        broken = dict(sample_bank[0], id="t1q002")
        del broken["stem"]

        result = validate_question_bank(sample_bank + [broken])

        assert len(result.questions) == 2
        assert len(result.rejected) == 1
        assert "stem" in result.rejected[0]

    def test_single_option_rejected(self, sample_bank):
        lonely = dict(sample_bank[0], id="t1q003", options=[{"id": "a", "text": "Only"}])

        result = validate_question_bank([lonely])

        assert result.questions == []
        assert "options" in result.rejected[0]

    def test_xp_out_of_range_rejected(self, sample_bank):
        greedy = dict(sample_bank[0], id="t3q001", xp=60)

        assert validate_question_bank([greedy]).questions == []

    def test_empty_answer_rejected(self, sample_bank):
        blank = dict(sample_bank[1], id="t2q002", correctAnswer=[])

        assert validate_question_bank([blank]).questions == []

    def test_duplicate_ids_rejected(self, sample_bank):
        result = validate_question_bank(sample_bank + [sample_bank[0]])

        assert len(result.questions) == 2
        assert "duplicate id t1q001" in result.rejected[0]

    def test_non_object_rejected(self):
        result = validate_question_bank(["not a question", 42])

        assert result.questions == []
        assert len(result.rejected) == 2


class TestBankQuestion:
    def test_record_keeps_wire_names_and_extras(self, sample_bank):
        extra = dict(sample_bank[0], linkedFollowUp=None, context="Unit 2")

        record = BankQuestion.model_validate(extra).to_record()

        assert record["correctAnswer"] == "b"
        assert record["bloomsLevel"] == "remember"
        assert record["context"] == "Unit 2"
        assert "correct_answer" not in record
