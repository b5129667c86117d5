"""
Review-Question XP Award Protocol.

A correct first answer to a review question pays the question's XP once per
(student, resource, question). The award record and the ledger credit are
written in one store transaction; the record's uniqueness is what makes
retries, double clicks and concurrent requests pay exactly once.

Also validates the question banks teachers upload, since a bank, when
present, is the authority on what each question is worth.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from config import Settings, get_settings
from src.store.base import AwardKey, EngagementStore, ProfileNotFoundError
from src.telemetry.metrics import Clock, epoch_ms

from .ledger import apply_multiplier

# =============================================================================
# Question Bank
# =============================================================================


class QuestionOption(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str = Field(min_length=1)
    text: str = ""


class BankQuestion(BaseModel):
    """One question of an uploaded review bank."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(min_length=1)
    tier: int = Field(ge=1)
    type: str = Field(min_length=1)
    stem: str = Field(min_length=1)
    options: list[QuestionOption] = Field(min_length=2)
    correct_answer: str | list[str] = Field(alias="correctAnswer")
    xp: int = Field(default=0, ge=0, le=50)
    explanation: str = ""
    blooms_level: str | None = Field(default=None, alias="bloomsLevel")

    @field_validator("correct_answer")
    @classmethod
    def _answer_present(cls, v: str | list[str]) -> str | list[str]:
        if not v:
            raise ValueError("correct answer is empty")
        return v

    def to_record(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class QuestionBankError(ValueError):
    """An uploaded bank has no usable questions."""


@dataclass
class BankValidation:
    """Outcome of validating a raw question bank."""

    questions: list[BankQuestion] = field(default_factory=list)
    rejected: list[str] = field(default_factory=list)

    @property
    def tiers(self) -> dict[int, int]:
        return dict(sorted(Counter(q.tier for q in self.questions).items()))


def validate_question_bank(raw: list[Any]) -> BankValidation:
    """
    Split a raw bank into valid questions and rejection messages.

    Questions with missing fields, fewer than two options, XP outside 0-50,
    or an id already seen earlier in the bank are rejected.
    """
    result = BankValidation()
    seen: set[str] = set()

    for index, item in enumerate(raw):
        try:
            question = BankQuestion.model_validate(item)
        except ValidationError as e:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
            result.rejected.append(f"#{index}: invalid {fields}")
            continue
        if question.id in seen:
            result.rejected.append(f"#{index}: duplicate id {question.id}")
            continue
        seen.add(question.id)
        result.questions.append(question)

    return result


# =============================================================================
# Award Protocol
# =============================================================================


@dataclass(frozen=True)
class AwardResult:
    awarded: bool
    reason: str | None = None  # why nothing was paid
    xp_amount: int = 0
    new_xp: int | None = None
    new_level: int | None = None
    leveled_up: bool = False


class QuestionAwardService:
    """Pays review-question XP exactly once per student and question."""

    def __init__(
        self,
        store: EngagementStore,
        settings: Settings | None = None,
        clock: Clock = epoch_ms,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.clock = clock

    def _valid_amount(self, xp: Any) -> bool:
        return isinstance(xp, int) and not isinstance(xp, bool) and 0 < xp <= self.settings.max_question_xp

    async def _bank_xp(self, resource_id: str, question_id: str, requested: int) -> tuple[int | None, str | None]:
        """XP the bank assigns to ``question_id``; the requested amount when there is no bank."""
        bank = await self.store.get_question_bank(resource_id)
        if bank is None:
            return requested, None

        for question in bank:
            if question.get("id") == question_id:
                xp = question.get("xp") or 0
                if not self._valid_amount(xp):
                    return None, "invalid_question_xp"
                return xp, None
        return None, "unknown_question"

    async def award_question_xp(
        self,
        student_id: str,
        resource_id: str,
        question_id: str,
        xp_amount: int,
        class_type: str | None = None,
    ) -> AwardResult:
        """
        Award XP for a correct review answer if it has not been paid before.

        Args:
            student_id: Answering student
            resource_id: Resource the review belongs to
            question_id: Question answered correctly
            xp_amount: Client's idea of the question's worth (bank wins)
            class_type: Class credited with the XP

        Returns:
            AwardResult; ``awarded`` is False with a ``reason`` when nothing changed
        """
        if not (student_id and resource_id and question_id):
            return AwardResult(awarded=False, reason="invalid_request")
        if not self._valid_amount(xp_amount):
            logger.warning(f"Rejected award {student_id}/{resource_id}/{question_id}: xp={xp_amount!r}")
            return AwardResult(awarded=False, reason="invalid_amount")

        key = AwardKey(student_id, resource_id, question_id)
        try:
            xp, problem = await self._bank_xp(resource_id, question_id, xp_amount)
            if problem:
                logger.warning(f"Rejected award {key}: {problem}")
                return AwardResult(awarded=False, reason=problem)

            multiplier = await self.store.active_xp_multiplier(class_type, self.clock())
            xp = apply_multiplier(xp, multiplier)

            credit = await self.store.claim_question_award(key, xp, class_type)
        except ProfileNotFoundError:
            logger.warning(f"Rejected award {key}: no profile")
            return AwardResult(awarded=False, reason="unknown_student")
        except Exception:  # Intentionally broad - report failure instead of raising to the review view
            logger.exception(f"Failed to award question XP {key}")
            return AwardResult(awarded=False, reason="store_error")

        if credit is None:
            logger.debug(f"Question already awarded {key}")
            return AwardResult(awarded=False, reason="already_awarded")

        logger.info(f"Awarded {xp} XP to {student_id} for {resource_id}/{question_id}")
        return AwardResult(
            awarded=True,
            xp_amount=xp,
            new_xp=credit.new_xp,
            new_level=credit.new_level,
            leveled_up=credit.leveled_up,
        )

    async def awarded_questions(self, student_id: str, resource_id: str) -> set[str]:
        """Question ids already paid for, so the review view can mark them answered."""
        return await self.store.awarded_question_ids(student_id, resource_id)

    async def upload_question_bank(
        self,
        resource_id: str,
        raw: list[Any],
        title: str = "",
        class_type: str = "",
        uploaded_by: str = "",
    ) -> BankValidation:
        """
        Validate and store a question bank, replacing any previous one.

        Raises:
            QuestionBankError: If no question in ``raw`` is valid
        """
        validation = validate_question_bank(raw)
        if not validation.questions:
            raise QuestionBankError(
                "No valid questions (required: id, tier, type, stem, options, correctAnswer)"
            )

        for message in validation.rejected:
            logger.warning(f"Bank {resource_id}: skipped {message}")

        await self.store.save_question_bank(
            resource_id,
            [q.to_record() for q in validation.questions],
            title=title,
            class_type=class_type,
            uploaded_by=uploaded_by,
        )
        logger.info(
            f"Uploaded bank for {resource_id}: {len(validation.questions)} questions, "
            f"{len(validation.rejected)} rejected"
        )
        return validation
