"""
Feedback form schemas.

Questions are a tagged variant on ``type``; each variant parses a raw answer
into its matching typed answer or raises ``AnswerError`` with a message that
names the question.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union
from pydantic import BaseModel, Field, TypeAdapter, field_validator


class AnswerError(ValueError):
    """Raw answer does not satisfy its question's constraints"""


# -------- Answers --------

class RatingAnswer(BaseModel):
    kind: Literal["rating"] = "rating"
    value: int

class TextAnswer(BaseModel):
    kind: Literal["text"] = "text"
    value: str

class YesNoAnswer(BaseModel):
    kind: Literal["yes_no"] = "yes_no"
    value: Literal["yes", "no"]

class ChoiceAnswer(BaseModel):
    kind: Literal["multiple_choice"] = "multiple_choice"
    value: List[str]

Answer = Annotated[
    Union[RatingAnswer, TextAnswer, YesNoAnswer, ChoiceAnswer],
    Field(discriminator="kind"),
]


def is_blank(raw: Any) -> bool:
    if raw is None:
        return True
    if isinstance(raw, str):
        return raw.strip() == ""
    if isinstance(raw, (list, tuple, dict)):
        return len(raw) == 0
    return False


# -------- Questions --------

class _QuestionBase(BaseModel):
    id: str
    text: str
    required: bool = False

class RatingQuestion(_QuestionBase):
    type: Literal["rating"] = "rating"
    scale: int = Field(5, ge=2, le=10)

    def parse_answer(self, raw: Any) -> RatingAnswer:
        message = f'Rating for "{self.text}" must be between 1 and {self.scale}'
        if isinstance(raw, bool):
            raise AnswerError(message)
        try:
            number = float(raw)
        except (TypeError, ValueError):
            raise AnswerError(message)
        if not number.is_integer() or not 1 <= number <= self.scale:
            raise AnswerError(message)
        return RatingAnswer(value=int(number))

class TextQuestion(_QuestionBase):
    type: Literal["text"] = "text"
    max_length: int = 500

    def parse_answer(self, raw: Any) -> TextAnswer:
        if not isinstance(raw, str):
            raise AnswerError(f'Answer for "{self.text}" must be text')
        value = raw.strip()
        if len(value) > self.max_length:
            raise AnswerError(f'Answer for "{self.text}" must be at most {self.max_length} characters')
        return TextAnswer(value=value)

class LongTextQuestion(TextQuestion):
    type: Literal["long_text"] = "long_text"
    max_length: int = 5000

class YesNoQuestion(_QuestionBase):
    type: Literal["yes_no"] = "yes_no"

    def parse_answer(self, raw: Any) -> YesNoAnswer:
        value = raw.strip().lower() if isinstance(raw, str) else None
        if value not in ("yes", "no"):
            raise AnswerError(f'Answer for "{self.text}" must be yes or no')
        return YesNoAnswer(value=value)

class MultipleChoiceQuestion(_QuestionBase):
    type: Literal["multiple_choice"] = "multiple_choice"
    options: List[str]
    allow_multiple: bool = False

    @field_validator("options")
    @classmethod
    def options_not_empty(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("multiple choice questions need at least one option")
        return v

    def parse_answer(self, raw: Any) -> ChoiceAnswer:
        picked = raw if isinstance(raw, list) else [raw]
        if not self.allow_multiple and len(picked) != 1:
            raise AnswerError(f'Answer for "{self.text}" must be a single option')
        if any(choice not in self.options for choice in picked):
            raise AnswerError(f'Answer for "{self.text}" must be one of: {", ".join(self.options)}')
        return ChoiceAnswer(value=list(picked))

Question = Annotated[
    Union[RatingQuestion, TextQuestion, LongTextQuestion, YesNoQuestion, MultipleChoiceQuestion],
    Field(discriminator="type"),
]

question_list_adapter = TypeAdapter(List[Question])


def parse_questions(raw_questions: Any) -> List[Question]:
    return question_list_adapter.validate_python(raw_questions or [])


# -------- Requests / responses --------

class FeedbackFormCreate(BaseModel):
    """Schema for creating a feedback form"""
    title: str
    event_id: Optional[int] = None
    questions: List[Question]
    anonymous_enabled: bool = False
    active: bool = True

class FeedbackSubmitRequest(BaseModel):
    """Feedback submission from an attendee"""
    form_id: int = Field(alias="formId")
    event_id: int = Field(alias="eventId")
    answers: Dict[str, Any]

    model_config = {"populate_by_name": True}

class FeedbackSubmitResult(BaseModel):
    response_id: int = Field(serialization_alias="responseId")
    certificate_triggered: bool = Field(serialization_alias="certificateTriggered")
