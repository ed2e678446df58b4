"""Data models and schemas for the recipe synthesis pipeline.

Defines Pydantic models for inbound requests, the validated Recipe contract and
the per-action request variants. All models use Pydantic v2. Wire names are
camelCase (``mealType``, ``imagePrompt``); Python attributes are snake_case and
either form is accepted on input.
"""

from enum import Enum
from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator
from pydantic.alias_generators import to_camel


class SkillLevel(str, Enum):
    BEGINNER = "Beginner"
    INTERMEDIATE = "Intermediate"
    ADVANCED = "Advanced"


def _normalize_skill(value: Any) -> Any:
    """Accept "beginner", " ADVANCED " and similar spellings."""
    if isinstance(value, str):
        wanted = value.strip().lower()
        for member in SkillLevel:
            if member.value.lower() == wanted:
                return member
    return value


class CamelModel(BaseModel):
    """Base for wire models: camelCase aliases, whitespace stripped."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


class GenerationRequest(CamelModel):
    """Ingredients and preferences collected by the UI.

    Ingredients are stripped, lowercased and de-duplicated (order preserved).
    An empty list is a valid *value*; the pipeline rejects it with EmptyInput
    before any prompt is built.
    """

    ingredients: Annotated[List[str], Field(default_factory=list, max_length=50)]
    dietary_constraint: Annotated[str, Field(max_length=100)] = "None"
    cuisine_style: Annotated[str, Field(max_length=100)] = "International"
    meal_category: Annotated[str, Field(max_length=100)] = "Dinner"
    skill_level: SkillLevel = SkillLevel.INTERMEDIATE
    spice_level: Annotated[str, Field(max_length=50)] = "Medium"
    cooking_preference: Annotated[str, Field(max_length=100)] = "Home-style"

    @field_validator("ingredients", mode="before")
    @classmethod
    def normalize_ingredients(cls, value: Any) -> Any:
        """Lowercase, strip and de-duplicate ingredient names."""
        if value is None:
            return []
        if isinstance(value, str):
            value = value.split(",")
        if not isinstance(value, list):
            return value
        cleaned = [item.strip().lower() for item in value if isinstance(item, str) and item.strip()]
        return list(dict.fromkeys(cleaned))

    @field_validator("dietary_constraint", "cuisine_style", "meal_category", "spice_level", "cooking_preference", mode="before")
    @classmethod
    def blank_preference_uses_default(cls, value: Any, info) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return cls.model_fields[info.field_name].default
        return value

    @field_validator("skill_level", mode="before")
    @classmethod
    def normalize_skill_level(cls, value: Any) -> Any:
        if value is None or value == "":
            return SkillLevel.INTERMEDIATE
        return _normalize_skill(value)


# ============================================================================
# Recipe contract
# ============================================================================


class Ingredient(CamelModel):
    name: Annotated[str, Field(min_length=1, description="Ingredient name")]
    amount: str = "to taste"
    unit: str = "units"


class Nutrition(CamelModel):
    calories: Annotated[Union[int, float], Field(ge=0, description="Calories per serving in kcal")] = 0
    protein: str = "0g"
    carbs: str = "0g"
    fat: str = "0g"


# Fields whose null or blank value is replaced by the declared default
_DEFAULTABLE_EMPTY = (None, "")


def _drop_empty(data: dict, keys: tuple[str, ...]) -> dict:
    return {k: v for k, v in data.items() if not (k in keys and v in _DEFAULTABLE_EMPTY)}


class Recipe(CamelModel):
    """The validated Recipe returned to callers.

    Fields with defaults are filled when absent, null or blank. Required fields
    (title, ingredients, instructions, imagePrompt) reject instead.
    """

    title: Annotated[str, Field(min_length=1)]
    description: str = "A delicious AI-curated culinary creation."
    cuisine: str = "Global Fusion"
    meal_type: str = "Main Course"
    prep_time: str = "15 mins"
    cook_time: str = "30 mins"
    servings: Annotated[int, Field(gt=0)] = 2
    difficulty: SkillLevel = SkillLevel.INTERMEDIATE
    ingredients: Annotated[List[Ingredient], Field(min_length=1)]
    instructions: Annotated[List[Annotated[str, Field(min_length=1)]], Field(min_length=1)]
    tips: List[str] = Field(default_factory=list)
    substitutions: List[str] = Field(default_factory=list)
    serving_suggestions: str = "Serve hot and enjoy!"
    nutrition: Nutrition = Field(default_factory=Nutrition)
    image_prompt: Annotated[str, Field(min_length=10)]

    @model_validator(mode="before")
    @classmethod
    def fill_empty_defaults(cls, data: Any) -> Any:
        """Treat null or blank defaultable fields as absent."""
        if not isinstance(data, dict):
            return data
        keys = (
            "description", "cuisine", "mealType", "meal_type", "prepTime", "prep_time",
            "cookTime", "cook_time", "servings", "difficulty", "tips", "substitutions",
            "servingSuggestions", "serving_suggestions", "nutrition",
        )
        data = _drop_empty(data, keys)
        ingredients = data.get("ingredients")
        if isinstance(ingredients, list):
            data["ingredients"] = [
                _drop_empty(item, ("amount", "unit")) if isinstance(item, dict) else item
                for item in ingredients
            ]
        nutrition = data.get("nutrition")
        if isinstance(nutrition, dict):
            data["nutrition"] = _drop_empty(nutrition, ("calories", "protein", "carbs", "fat"))
        return data

    @field_validator("difficulty", mode="before")
    @classmethod
    def normalize_difficulty(cls, value: Any) -> Any:
        return _normalize_skill(value)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class SynthesizedRecipe(Recipe):
    """A validated Recipe plus pipeline metadata (not part of the model's output)."""

    id: str
    created_at: Annotated[int, Field(description="Creation time in epoch milliseconds")]
    dietary_needs: List[str] = Field(default_factory=list)
    image_url: Optional[str] = None


class PreferenceFilters(CamelModel):
    """Preferences extracted from a free-text request ("spicy vegan thai dinner").

    Every field is optional: the model only fills what the text mentions.
    Blank values and unrecognized skill levels are dropped rather than rejected.
    """

    cuisine: Optional[str] = None
    diet: Optional[str] = None
    meal_type: Optional[str] = None
    skill: Optional[SkillLevel] = None
    spice_level: Optional[str] = None
    cooking_preference: Optional[str] = None

    @field_validator("*", mode="before")
    @classmethod
    def blank_is_absent(cls, value: Any) -> Any:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("skill", mode="before")
    @classmethod
    def lenient_skill(cls, value: Any) -> Any:
        value = _normalize_skill(value)
        return value if value is None or isinstance(value, SkillLevel) else None

    def request_updates(self) -> dict:
        """GenerationRequest fields set by these filters."""
        mapping = {
            "cuisine_style": self.cuisine,
            "dietary_constraint": self.diet,
            "meal_category": self.meal_type,
            "skill_level": self.skill,
            "spice_level": self.spice_level,
            "cooking_preference": self.cooking_preference,
        }
        return {name: value for name, value in mapping.items() if value is not None}

    def apply_to(self, request: GenerationRequest) -> GenerationRequest:
        """Return ``request`` with the extracted preferences laid over it."""
        return GenerationRequest.model_validate({**request.model_dump(), **self.request_updates()})

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# Action variants (tagged by "action")
# ============================================================================


class GenerateTextAction(CamelModel):
    action: Literal["generate"] = "generate"
    payload: GenerationRequest


class RecognizeImagePayload(CamelModel):
    image: Annotated[str, Field(min_length=1, description="Plain base64 or data: URI")]


class RecognizeImageAction(CamelModel):
    action: Literal["analyze"] = "analyze"
    payload: RecognizeImagePayload


class SynthesizeImagePayload(CamelModel):
    prompt: Annotated[str, Field(min_length=1, max_length=2000)]


class SynthesizeImageAction(CamelModel):
    action: Literal["image"] = "image"
    payload: SynthesizeImagePayload


class ParseFiltersPayload(CamelModel):
    text: Annotated[str, Field(min_length=1, max_length=1000)]


class ParseFiltersAction(CamelModel):
    action: Literal["filters"] = "filters"
    payload: ParseFiltersPayload


ChefAction = Annotated[
    Union[GenerateTextAction, RecognizeImageAction, SynthesizeImageAction, ParseFiltersAction],
    Field(discriminator="action"),
]


class HealthStatus(str, Enum):
    HEALTHY = "healthy"
    UNCONFIGURED = "unconfigured"


class HealthReport(BaseModel):
    status: HealthStatus
    credentials: Annotated[int, Field(ge=0)]


chef_action_adapter = TypeAdapter(ChefAction)
