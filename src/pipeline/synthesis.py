"""Synthesis Request Pipeline: request -> prompt -> failover dispatch -> validation.

States: Idle -> PromptBuilding -> Dispatching -> Validating -> {Success, Rejected}.

- Empty ingredients short-circuit Idle -> Rejected (EmptyInput) before any prompt
  is built or credential used.
- Orchestrator exhaustion maps to SynthesisUnavailable; a fatal model failure maps
  to SynthesisRejectedInput.
- Validator rejections (MalformedJSON, SchemaViolation) surface unchanged. A
  rejected recipe is never patched up or replaced.

Image synthesis runs as its own sub-pipeline with the same failover wrapping and
no validation stage. When it fails during ``generate_recipe_with_image`` the recipe
is still returned, without an image (or with the configured placeholder).
"""

import base64
import time
import uuid
from enum import Enum
from typing import Awaitable, Callable, Optional, TypeVar, Union, get_args

from src.gateway.gemini import ModelGateway
from src.gateway.images import detect_mime_type, prepare_image
from src.models.errors import (
    CredentialsExhausted,
    EmptyInput,
    FailureSignal,
    GatewayError,
    MissingCoreIngredient,
    SynthesisError,
    SynthesisRejectedInput,
    SynthesisUnavailable,
    Unconfigured,
)
from src.models.models import (
    ChefAction,
    GenerateTextAction,
    GenerationRequest,
    HealthReport,
    HealthStatus,
    ParseFiltersAction,
    PreferenceFilters,
    RecognizeImageAction,
    SynthesizedRecipe,
    SynthesizeImageAction,
    chef_action_adapter,
)
from src.models.schema import FILTER_RESPONSE_SCHEMA, RECIPE_RESPONSE_SCHEMA
from src.pipeline.credentials import Credential, CredentialPool
from src.pipeline.failover import run_with_failover
from src.pipeline.validator import validate_filters, validate_recipe
from src.prompts.prompts import build_filter_prompt, build_image_prompt, build_recipe_prompt
from src.utils.config import Config, config as default_config
from src.utils.logger import logger

T = TypeVar("T")


class PipelineState(str, Enum):
    IDLE = "idle"
    PROMPT_BUILDING = "prompt_building"
    DISPATCHING = "dispatching"
    VALIDATING = "validating"
    SUCCESS = "success"
    REJECTED = "rejected"


# Staple proteins, vegetables and grains that can anchor a dish on their own
CORE_INGREDIENTS = frozenset(
    {
        "chicken", "eggs", "fish", "shrimp", "paneer", "tofu", "chana", "dal", "kidney beans",
        "onion", "tomato", "potato", "carrot", "spinach", "bell pepper", "mushroom", "cauliflower",
        "okra", "brinjal", "rice", "atta", "maida", "basmati", "poha", "bread", "pasta", "quinoa",
    }
)


def has_core_ingredient(ingredients: list[str]) -> bool:
    """True if a staple is present or enough ingredients were supplied to build a dish."""
    return len(ingredients) >= 3 or any(item in CORE_INGREDIENTS for item in ingredients)


def parse_ingredient_list(text: str) -> list[str]:
    """Split comma/newline-delimited model text into normalized ingredient names."""
    items = []
    for chunk in text.replace("\n", ",").split(","):
        name = chunk.strip().strip("-*•.").strip().lower()
        if name:
            items.append(name)
    return list(dict.fromkeys(items))


TransitionHook = Callable[[str, PipelineState], None]


class SynthesisPipeline:
    """Composes prompt construction, failover dispatch and validation."""

    def __init__(
        self,
        pool: Optional[CredentialPool] = None,
        gateway: Optional[ModelGateway] = None,
        cfg: Optional[Config] = None,
        on_transition: Optional[TransitionHook] = None,
    ) -> None:
        self.config = cfg or default_config
        self.pool = pool if pool is not None else CredentialPool.from_config(self.config)
        self.gateway = gateway or ModelGateway(self.config)
        self.on_transition = on_transition
        self._handlers = {
            action_type: getattr(self, method_name) for action_type, method_name in ACTION_HANDLERS.items()
        }

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def health(self) -> HealthReport:
        """Pool-emptiness check; never touches the network."""
        return self.pool.health()

    def ensure_configured(self) -> None:
        """Raise Unconfigured when the deployment has no credentials at all."""
        if self.health().status is HealthStatus.UNCONFIGURED:
            raise Unconfigured()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _transition(self, request_id: str, state: PipelineState) -> None:
        logger.debug(f"Pipeline state -> {state.value}", extra={"request_id": request_id})
        if self.on_transition is not None:
            self.on_transition(request_id, state)

    async def _dispatch(
        self,
        operation: str,
        task: Callable[[Credential], Awaitable[T]],
        request_id: str,
    ) -> T:
        """Run ``task`` under failover and map orchestrator outcomes to caller errors."""
        try:
            return await run_with_failover(self.pool, task, operation=operation, request_id=request_id)
        except CredentialsExhausted as e:
            raise SynthesisUnavailable(attempts=e.attempts, last_error=e.last_error) from e
        except SynthesisError:
            raise
        except GatewayError as e:
            message = None
            if e.signal is FailureSignal.SAFETY_BLOCKED:
                message = "The request was blocked by the model's safety filters. Adjust the ingredients or preferences."
            raise SynthesisRejectedInput(message, signal=e.signal) from e
        except Exception as e:
            logger.error(f"{operation}: unexpected failure: {e}", exc_info=True, extra={"request_id": request_id})
            raise SynthesisRejectedInput() from e

    # ------------------------------------------------------------------
    # Recipe text
    # ------------------------------------------------------------------

    async def generate_recipe(self, request: GenerationRequest) -> SynthesizedRecipe:
        """Generate and validate one recipe.

        Args:
            request: Ingredients and preferences.

        Returns:
            A validated recipe with a fresh ``id`` and ``created_at``.

        Raises:
            EmptyInput: No ingredients (no prompt built, no credential used).
            MissingCoreIngredient: Core ingredient screen enabled and not satisfied.
            SynthesisUnavailable: Every credential failed recoverably, or none exist.
            SynthesisRejectedInput: The model rejected the request (fatal failure).
            MalformedJSON: The model text did not decode.
            SchemaViolation: The decoded recipe broke the contract.
        """
        request_id = uuid.uuid4().hex[:12]
        self._transition(request_id, PipelineState.IDLE)

        if not request.ingredients:
            self._transition(request_id, PipelineState.REJECTED)
            raise EmptyInput()
        if self.config.REQUIRE_CORE_INGREDIENT and not has_core_ingredient(request.ingredients):
            self._transition(request_id, PipelineState.REJECTED)
            raise MissingCoreIngredient()

        self._transition(request_id, PipelineState.PROMPT_BUILDING)
        prompt = build_recipe_prompt(request)

        self._transition(request_id, PipelineState.DISPATCHING)
        logger.info(
            f"Generating recipe for {len(request.ingredients)} ingredient(s), "
            f"cuisine={request.cuisine_style}, meal={request.meal_category}",
            extra={"request_id": request_id},
        )
        try:
            raw = await self._dispatch(
                "recipe generation",
                lambda credential: self.gateway.generate_recipe_text(credential, prompt, RECIPE_RESPONSE_SCHEMA),
                request_id,
            )
        except SynthesisError:
            self._transition(request_id, PipelineState.REJECTED)
            raise

        self._transition(request_id, PipelineState.VALIDATING)
        try:
            recipe = validate_recipe(raw)
        except SynthesisError:
            self._transition(request_id, PipelineState.REJECTED)
            raise

        diet = request.dietary_constraint
        result = SynthesizedRecipe.model_validate(
            {
                **recipe.model_dump(),
                "id": uuid.uuid4().hex,
                "created_at": int(time.time() * 1000),
                "dietary_needs": [diet] if diet.lower() != "none" else [],
            }
        )
        self._transition(request_id, PipelineState.SUCCESS)
        logger.info(f"Recipe synthesized: '{result.title}'", extra={"request_id": request_id})
        return result

    # ------------------------------------------------------------------
    # Ingredient recognition
    # ------------------------------------------------------------------

    async def recognize_ingredients(self, image_payload: str) -> list[str]:
        """Identify ingredients in one base64 image.

        Raises:
            InvalidImage: Payload undecodable, unsupported format or too large.
            SynthesisUnavailable / SynthesisRejectedInput: As for recipe generation.
        """
        request_id = uuid.uuid4().hex[:12]
        image_bytes, mime_type = prepare_image(image_payload)

        text = await self._dispatch(
            "ingredient recognition",
            lambda credential: self.gateway.recognize_ingredients(credential, image_bytes, mime_type),
            request_id,
        )
        ingredients = parse_ingredient_list(text)
        logger.info(f"Recognized {len(ingredients)} ingredient(s)", extra={"request_id": request_id})
        return ingredients

    # ------------------------------------------------------------------
    # Preference filters
    # ------------------------------------------------------------------

    async def parse_filters(self, text: str) -> PreferenceFilters:
        """Turn a free-text request into structured preferences.

        Raises:
            EmptyInput: Blank text.
            MalformedJSON / SchemaViolation: The model's answer did not validate.
            SynthesisUnavailable / SynthesisRejectedInput: As for recipe generation.
        """
        if not text or not text.strip():
            raise EmptyInput("Describe what you would like to cook.")

        request_id = uuid.uuid4().hex[:12]
        prompt = build_filter_prompt(text)
        raw = await self._dispatch(
            "filter parsing",
            lambda credential: self.gateway.parse_filters(credential, prompt, FILTER_RESPONSE_SCHEMA),
            request_id,
        )
        filters = validate_filters(raw)
        logger.info(f"Parsed filters: {sorted(filters.to_wire())}", extra={"request_id": request_id})
        return filters

    # ------------------------------------------------------------------
    # Image synthesis
    # ------------------------------------------------------------------

    async def synthesize_image(self, image_prompt: str) -> str:
        """Generate a picture for ``image_prompt``. Returns base64-encoded bytes.

        Raises:
            EmptyInput: Blank prompt.
            NoImageProduced: The model answered without an image part.
            SynthesisUnavailable / SynthesisRejectedInput: As for recipe generation.
        """
        if not image_prompt or not image_prompt.strip():
            raise EmptyInput("Provide a description of the dish to picture.")

        request_id = uuid.uuid4().hex[:12]
        prompt = build_image_prompt(image_prompt)
        image = await self._dispatch(
            "image synthesis",
            lambda credential: self.gateway.synthesize_image(credential, prompt),
            request_id,
        )
        logger.info(f"Image synthesized ({len(image) / 1024:.1f}KB)", extra={"request_id": request_id})
        return base64.b64encode(image).decode("ascii")

    async def generate_recipe_with_image(self, request: GenerationRequest) -> SynthesizedRecipe:
        """Generate a recipe, then try to picture it.

        Image failure is a presentation concern: the recipe is returned with
        ``image_url`` set to the configured placeholder, or left unset.
        """
        recipe = await self.generate_recipe(request)
        try:
            image_b64 = await self.synthesize_image(recipe.image_prompt)
        except SynthesisError as e:
            logger.warning(f"Image synthesis failed for '{recipe.title}' ({e.code}); returning recipe without image")
            recipe.image_url = self.config.PLACEHOLDER_IMAGE_URL or None
            return recipe

        mime_type = detect_mime_type(base64.b64decode(image_b64)) or "image/png"
        recipe.image_url = f"data:{mime_type};base64,{image_b64}"
        return recipe

    # ------------------------------------------------------------------
    # Action dispatch
    # ------------------------------------------------------------------

    async def handle(self, action: Union[ChefAction, dict]) -> dict:
        """Run one tagged action and return its success payload.

        Raw dicts are parsed into the action union first, so an unknown
        ``action`` fails validation instead of reaching a default branch.
        """
        if isinstance(action, dict):
            action = chef_action_adapter.validate_python(action)
        handler = self._handlers[type(action)]
        return await handler(action)

    async def _handle_generate(self, action: GenerateTextAction) -> dict:
        recipe = await self.generate_recipe(action.payload)
        return {"status": "success", "recipe": recipe.to_wire()}

    async def _handle_analyze(self, action: RecognizeImageAction) -> dict:
        ingredients = await self.recognize_ingredients(action.payload.image)
        return {"status": "success", "ingredients": ingredients, "text": ", ".join(ingredients)}

    async def _handle_filters(self, action: ParseFiltersAction) -> dict:
        filters = await self.parse_filters(action.payload.text)
        return {"status": "success", "filters": filters.to_wire()}

    async def _handle_image(self, action: SynthesizeImageAction) -> dict:
        data = await self.synthesize_image(action.payload.prompt)
        return {"status": "success", "data": data}


ACTION_HANDLERS = {
    GenerateTextAction: "_handle_generate",
    RecognizeImageAction: "_handle_analyze",
    SynthesizeImageAction: "_handle_image",
    ParseFiltersAction: "_handle_filters",
}

# Every member of the action union must have a handler
_unhandled = set(get_args(get_args(ChefAction)[0])) - set(ACTION_HANDLERS)
if _unhandled:
    raise RuntimeError(f"No pipeline handler for action type(s): {sorted(t.__name__ for t in _unhandled)}")
