from pydantic import BaseModel, Field


class LanguagePair(BaseModel):
    source: str = Field(default="English", example="English")
    target: str = Field(default="Spanish", example="Spanish")


class TutorContext(BaseModel):
    currentWord: str | None = Field(default=None, example="casa")
    currentCategory: str | None = Field(default=None, example="home")
    currentWordProgress: str | None = Field(default=None, example="pronunciation")
    userLanguages: LanguagePair = Field(default_factory=LanguagePair)


class ChatStreamRequest(BaseModel):
    session_id: str = Field(
        example="3f1c9a52-6f0e-4c55-9a43-2b1f3c2d7e10",
        description="Identifier for the tutoring session",
    )
    user_message: str = Field(
        min_length=1,
        example="¿Cómo se dice house?",
        description="The new message from the learner",
    )
    history: list[str] = Field(
        default_factory=list,
        description="Previous turns, alternating learner and tutor",
    )
    context: TutorContext = Field(default_factory=TutorContext)


class ExerciseLevel(BaseModel):
    unscrambled: str
    scrambled: str


class ExerciseSet(BaseModel):
    basic: ExerciseLevel
    intermediate: ExerciseLevel
    advanced: ExerciseLevel
    count: int


class StreamMetadata(BaseModel):
    """Trailing fields written after the streamed ``response`` value."""

    currentCategory: str | None = None
    currentWord: str | None = None
    currentWordProgress: str | None = None
    exercises: ExerciseSet | None = None


class ParsedObject(BaseModel):
    """Final, fully parsed reply object."""

    response: str
    currentCategory: str | None = None
    currentWord: str | None = None
    currentWordProgress: str | None = None
    exercises: ExerciseSet | None = None
