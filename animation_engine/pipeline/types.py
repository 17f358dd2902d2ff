"""
Pipeline Types - Core Data Structures.

Implements the data structures read and produced by the pipeline execution engine:
- ParticipantData / GenerationRun: the participant submission being processed
- PipelineBlock: one configured processing step (crop, AI generation, scoring, filters)
- ReferenceImageConfig / ResolvedReferenceImage: images fed to AI blocks
- QuizScoringConfig / QuizScoringResult: profile scoring over quiz answers
- PipelineResult: outcome of a single run

Configuration payloads arrive camelCased from the wizard, so every model accepts
both camelCase aliases and snake_case field names.
"""

from enum import Enum
from typing import Optional, List, Dict, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


MAX_PIPELINE_BLOCKS = 20
MAX_AI_BLOCKS = 4
MAX_REFERENCE_IMAGES = 5


class CamelModel(BaseModel):
    """Base model accepting camelCase aliases as well as field names."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())


# =============================================================================
# ENUMS
# =============================================================================

class BlockType(str, Enum):
    """Pipeline stage a block belongs to."""
    PREPROCESSING = "preprocessing"
    AI_GENERATION = "ai-generation"
    PROCESSING = "processing"
    POSTPROCESSING = "postprocessing"


class BlockName(str, Enum):
    """Handler variant executing a block."""
    CROP_RESIZE = "crop-resize"
    AI_GENERATION = "ai-generation"
    QUIZ_SCORING = "quiz-scoring"
    FILTERS = "filters"


class ImageUsageMode(str, Enum):
    """How an AI block uses its input images."""
    NONE = "none"            # Text-to-image only
    REFERENCE = "reference"  # Images guide the style of a new image
    EDIT = "edit"            # Images are transformed directly


class ImageSource(str, Enum):
    """Where a reference image comes from."""
    SELFIE = "selfie"
    UPLOAD = "upload"
    URL = "url"
    AI_BLOCK_OUTPUT = "ai-block-output"


class CropFormat(str, Enum):
    """Target framing for crop-resize blocks."""
    SQUARE = "square"
    WIDE = "16:9"
    CLASSIC = "4:3"
    ORIGINAL = "original"


class AspectRatio(str, Enum):
    """Output aspect ratio requested from AI providers."""
    SQUARE = "1:1"
    PORTRAIT_STORY = "9:16"
    LANDSCAPE_WIDE = "16:9"
    PORTRAIT_PHOTO = "2:3"
    LANDSCAPE_PHOTO = "3:2"


class InputElementType(str, Enum):
    """Participant-facing input element types."""
    SELFIE = "selfie"
    CHOICE = "choice"
    SLIDER = "slider"
    FREE_TEXT = "free-text"


class GenerationStatus(str, Enum):
    """Lifecycle of a generation run, owned by the status sink."""
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class RunState(str, Enum):
    """Executor state for a single run."""
    COMPLETED = "completed"
    FAILED = "failed"


class ValidationVerdict(str, Enum):
    """Outcome of pre-execution pipeline validation."""
    VALID = "valid"
    WARNING = "warning"
    INFO = "info"
    ERROR = "error"


# =============================================================================
# PARTICIPANT SUBMISSION
# =============================================================================

class ParticipantAnswer(CamelModel):
    """A single answer from the participant form."""
    element_id: str
    type: InputElementType = InputElementType.CHOICE
    value: Union[str, int, float, None] = None


class ParticipantData(CamelModel):
    """Form values submitted by a participant."""
    nom: Optional[str] = None
    prenom: Optional[str] = None
    email: Optional[str] = None
    answers: List[ParticipantAnswer] = Field(default_factory=list)


class GenerationRun(CamelModel):
    """
    The generation record the engine reads.

    Persistence is owned by the generation store; the engine only reads the
    submission and reports status transitions through the store.
    """
    id: str
    animation_id: Optional[str] = None
    participant_data: ParticipantData = Field(default_factory=ParticipantData)
    selfie_url: Optional[str] = None
    status: GenerationStatus = GenerationStatus.PENDING


# =============================================================================
# INPUT COLLECTION (used by the validator and quiz scoring)
# =============================================================================

class InputElement(CamelModel):
    """A configured participant-facing input element."""
    id: str
    type: InputElementType
    order: int = 0
    question: Optional[str] = None
    required: bool = True
    options: Optional[List[str]] = None

    # Slider bounds
    min: Optional[float] = None
    max: Optional[float] = None


class InputCollection(CamelModel):
    """All input elements of an animation."""
    elements: List[InputElement] = Field(default_factory=list)

    def has_selfie(self) -> bool:
        return any(el.type == InputElementType.SELFIE for el in self.elements)

    def choice_questions(self) -> List[InputElement]:
        return [el for el in self.elements if el.type == InputElementType.CHOICE]


class BaseFieldToggle(CamelModel):
    enabled: bool = False
    required: bool = False


class BaseFieldsConfig(CamelModel):
    """Which identity fields the participant form collects."""
    name: BaseFieldToggle = Field(default_factory=BaseFieldToggle)
    first_name: BaseFieldToggle = Field(default_factory=BaseFieldToggle)
    email: BaseFieldToggle = Field(default_factory=BaseFieldToggle)


# =============================================================================
# REFERENCE IMAGES
# =============================================================================

class ReferenceImageConfig(CamelModel):
    """
    A reference image fed to an AI block.

    `order` numbers the image in prompts ({name} becomes "Image <rank>") and,
    for ai-block-output sources, must point to an earlier block.
    """
    id: Optional[str] = None
    name: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-zA-Z0-9_]+$")
    source: ImageSource
    order: int = Field(..., ge=1)
    url: Optional[str] = None
    source_block_id: Optional[str] = None


class ResolvedReferenceImage(BaseModel):
    """A reference image loaded in memory for one block execution."""
    name: str
    source: ImageSource
    buffer: bytes = Field(repr=False)
    size_bytes: int


# =============================================================================
# QUIZ SCORING
# =============================================================================

class QuizProfile(CamelModel):
    """A profile participants can be scored into."""
    key: str
    name: str
    description: str = ""
    image_style: str = ""


class OptionMapping(CamelModel):
    """Maps one choice option text to a profile key."""
    option_text: str
    profile_key: str


class QuestionMapping(CamelModel):
    """Option mappings of one choice question."""
    element_id: str
    option_mappings: List[OptionMapping] = Field(default_factory=list)


class QuizScoringConfig(CamelModel):
    """Configuration of a quiz-scoring block."""
    name: str = Field(..., description="Prefix for the variables this block adds")
    selected_question_ids: List[str] = Field(default_factory=list)
    question_mappings: List[QuestionMapping] = Field(default_factory=list)
    profiles: List[QuizProfile] = Field(default_factory=list)


class QuizScoringResult(BaseModel):
    """Winning profile and full tally of one scoring block."""
    block_name: str
    winner_profile: QuizProfile
    scores: Dict[str, int]


# =============================================================================
# PIPELINE BLOCKS
# =============================================================================

class PipelineBlockConfig(CamelModel):
    """Handler-specific settings; each handler reads only its own fields."""
    # Crop & Resize
    format: Optional[CropFormat] = None
    dimensions: Optional[int] = Field(None, ge=256, le=2048)

    # AI Generation
    model_id: Optional[str] = None
    prompt_template: Optional[str] = Field(None, max_length=2000)
    aspect_ratio: Optional[AspectRatio] = None
    image_usage_mode: Optional[ImageUsageMode] = None

    # Single image source (used when reference_images is not configured)
    image_source: Optional[ImageSource] = None
    image_url: Optional[str] = None
    source_block_id: Optional[str] = None

    reference_images: Optional[List[ReferenceImageConfig]] = Field(
        None, max_length=MAX_REFERENCE_IMAGES
    )

    # Quiz scoring
    quiz_scoring: Optional[QuizScoringConfig] = None

    # Filters
    filters: Optional[List[str]] = None


class PipelineBlock(CamelModel):
    """One configured step of an animation pipeline."""
    id: str
    type: BlockType
    block_name: BlockName
    order: int = Field(..., ge=0)
    config: PipelineBlockConfig = Field(default_factory=PipelineBlockConfig)


class PipelineDefinition(CamelModel):
    """An animation's pipeline plus the inputs it collects."""
    animation_id: Optional[str] = None
    pipeline: List[PipelineBlock] = Field(default_factory=list, max_length=MAX_PIPELINE_BLOCKS)
    input_collection: Optional[InputCollection] = None
    base_fields: Optional[BaseFieldsConfig] = None

    @model_validator(mode="after")
    def check_ai_block_limit(self) -> "PipelineDefinition":
        ai_blocks = [b for b in self.pipeline if b.type == BlockType.AI_GENERATION]
        if len(ai_blocks) > MAX_AI_BLOCKS:
            raise ValueError(f"Maximum {MAX_AI_BLOCKS} AI generation blocks allowed in pipeline")
        return self


# =============================================================================
# VALIDATION
# =============================================================================

class ValidationResult(BaseModel):
    """Verdict of the pipeline configuration validator."""
    type: ValidationVerdict
    message: Optional[str] = None

    @property
    def is_blocking(self) -> bool:
        return self.type == ValidationVerdict.ERROR


# =============================================================================
# PIPELINE RESULT
# =============================================================================

class BlockResult(BaseModel):
    """Outcome of one executed block."""
    block_id: str
    block_name: BlockName
    success: bool
    skipped: bool = False
    output_size: Optional[int] = None
    error: Optional[str] = None


class PipelineErrorInfo(BaseModel):
    """Taxonomy code and message of a failed run."""
    code: str
    message: str
    block_id: Optional[str] = None


class PipelineResult(BaseModel):
    """
    Complete result from executing a pipeline for one generation run.

    A failed run never carries a final image.
    """
    generation_id: str
    state: RunState

    final_image: Optional[bytes] = Field(None, repr=False)
    final_prompt: Optional[str] = None

    block_results: List[BlockResult] = Field(default_factory=list)
    block_outputs: Dict[str, bytes] = Field(default_factory=dict, repr=False)
    context: Dict[str, str] = Field(default_factory=dict)

    error: Optional[PipelineErrorInfo] = None
    execution_time_ms: int = 0

    @property
    def success(self) -> bool:
        return self.state == RunState.COMPLETED
