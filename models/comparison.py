from PIL import Image
from pydantic import BaseModel, ConfigDict, Field


class ComparisonOutcome(BaseModel):
    """Result of comparing one common path.

    `diff_image` is an in-memory RGB image owned by the outcome; the artifact
    store encodes it under `diff/<relative-path>`.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    score: float = Field(ge=0.0, le=1.0)
    diff_image: Image.Image

    @property
    def is_identical(self) -> bool:
        return self.score >= 1.0
