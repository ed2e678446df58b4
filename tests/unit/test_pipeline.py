"""Unit tests for the synthesis request pipeline.

A scripted gateway stands in for Gemini: each call pops the next outcome for
that operation and records which credential was used.
"""

import asyncio
import base64
import json
from typing import get_args

import pytest
from pydantic import ValidationError

from src.models.errors import (
    EmptyInput,
    FailureSignal,
    GatewayError,
    InvalidImage,
    MalformedJSON,
    MissingCoreIngredient,
    NoImageProduced,
    SchemaViolation,
    SynthesisRejectedInput,
    SynthesisUnavailable,
    Unconfigured,
)
from src.models.models import (
    ChefAction,
    GenerateTextAction,
    GenerationRequest,
    PreferenceFilters,
    SkillLevel,
    SynthesizedRecipe,
)
from src.pipeline.credentials import CredentialPool
from src.pipeline.synthesis import (
    ACTION_HANDLERS,
    PipelineState,
    SynthesisPipeline,
    has_core_ingredient,
    parse_ingredient_list,
)
from src.utils.config import Config


class ScriptedGateway:
    """Gateway double with per-operation outcome queues."""

    def __init__(self, recipe=(), recognize=(), image=(), filters=()):
        self.outcomes = {
            "recipe": list(recipe),
            "recognize": list(recognize),
            "image": list(image),
            "filters": list(filters),
        }
        self.calls = []

    def _next(self, operation, credential, detail):
        self.calls.append((operation, credential.position, detail))
        outcome = self.outcomes[operation].pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    async def generate_recipe_text(self, credential, prompt, schema):
        return self._next("recipe", credential, prompt)

    async def recognize_ingredients(self, credential, image_bytes, mime_type):
        return self._next("recognize", credential, mime_type)

    async def parse_filters(self, credential, prompt, schema):
        return self._next("filters", credential, prompt)

    async def synthesize_image(self, credential, prompt):
        return self._next("image", credential, prompt)


@pytest.fixture
def pipeline_config():
    cfg = Config()
    cfg.REQUIRE_CORE_INGREDIENT = False
    cfg.PLACEHOLDER_IMAGE_URL = ""
    return cfg


@pytest.fixture
def recipe_text(valid_recipe_data):
    return json.dumps(valid_recipe_data)


def make_pipeline(gateway, cfg, pool=None, **kwargs):
    return SynthesisPipeline(
        pool=pool if pool is not None else CredentialPool(["key-one-1111", "key-two-2222"]),
        gateway=gateway,
        cfg=cfg,
        **kwargs,
    )


def rate_limited():
    return GatewayError(FailureSignal.RATE_LIMITED, "429", status_code=429)


class TestHelpers:
    def test_core_ingredient_present(self):
        assert has_core_ingredient(["chicken"])
        assert has_core_ingredient(["salt", "pepper", "butter"])
        assert not has_core_ingredient(["salt", "pepper"])

    def test_parse_ingredient_list(self):
        text = "Tomato, basil\n- Mozzarella\n* olive oil, tomato,  "
        assert parse_ingredient_list(text) == ["tomato", "basil", "mozzarella", "olive oil"]


class TestGenerateRecipe:
    """Test the recipe text pipeline."""

    @pytest.mark.asyncio
    async def test_empty_input_makes_no_gateway_call(self, pipeline_config):
        gateway = ScriptedGateway()
        states = []
        pipeline = make_pipeline(gateway, pipeline_config, on_transition=lambda rid, state: states.append(state))

        with pytest.raises(EmptyInput):
            await pipeline.generate_recipe(GenerationRequest(ingredients=["   ", ""]))

        assert gateway.calls == []
        assert states == [PipelineState.IDLE, PipelineState.REJECTED]

    @pytest.mark.asyncio
    async def test_successful_generation(self, pipeline_config, recipe_text, valid_recipe_data):
        gateway = ScriptedGateway(recipe=[recipe_text])
        states = []
        pipeline = make_pipeline(gateway, pipeline_config, on_transition=lambda rid, state: states.append(state))

        recipe = await pipeline.generate_recipe(
            GenerationRequest(ingredients=["chicken", "rice"], dietary_constraint="Gluten-Free")
        )

        assert isinstance(recipe, SynthesizedRecipe)
        assert recipe.title == valid_recipe_data["title"]
        assert len(recipe.id) == 32
        assert recipe.created_at > 0
        assert recipe.dietary_needs == ["Gluten-Free"]
        assert recipe.image_url is None
        assert states == [
            PipelineState.IDLE,
            PipelineState.PROMPT_BUILDING,
            PipelineState.DISPATCHING,
            PipelineState.VALIDATING,
            PipelineState.SUCCESS,
        ]
        operation, position, prompt = gateway.calls[0]
        assert (operation, position) == ("recipe", 0)
        assert "chicken, rice" in prompt

    @pytest.mark.asyncio
    async def test_no_diet_means_no_dietary_needs(self, pipeline_config, recipe_text):
        pipeline = make_pipeline(ScriptedGateway(recipe=[recipe_text]), pipeline_config)
        recipe = await pipeline.generate_recipe(GenerationRequest(ingredients=["chicken"]))
        assert recipe.dietary_needs == []

    @pytest.mark.asyncio
    async def test_each_run_gets_fresh_identity(self, pipeline_config, recipe_text):
        pipeline = make_pipeline(ScriptedGateway(recipe=[recipe_text, recipe_text]), pipeline_config)
        request = GenerationRequest(ingredients=["chicken"])

        first = await pipeline.generate_recipe(request)
        second = await pipeline.generate_recipe(request)

        assert first.id != second.id

    @pytest.mark.asyncio
    async def test_fails_over_to_second_credential(self, pipeline_config, recipe_text):
        gateway = ScriptedGateway(recipe=[rate_limited(), recipe_text])

        recipe = await make_pipeline(gateway, pipeline_config).generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert recipe.title
        assert [position for _, position, _ in gateway.calls] == [0, 1]

    @pytest.mark.asyncio
    async def test_exhaustion_is_synthesis_unavailable(self, pipeline_config):
        gateway = ScriptedGateway(recipe=[rate_limited(), GatewayError(FailureSignal.SERVICE_UNAVAILABLE, "503")])
        states = []
        pipeline = make_pipeline(gateway, pipeline_config, on_transition=lambda rid, state: states.append(state))

        with pytest.raises(SynthesisUnavailable) as exc:
            await pipeline.generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert exc.value.code == "SYNTHESIS_UNAVAILABLE"
        assert exc.value.attempts == 2
        assert exc.value.last_error.signal is FailureSignal.SERVICE_UNAVAILABLE
        assert states[-1] is PipelineState.REJECTED

    @pytest.mark.asyncio
    async def test_empty_pool_is_synthesis_unavailable(self, pipeline_config):
        gateway = ScriptedGateway()
        pipeline = make_pipeline(gateway, pipeline_config, pool=CredentialPool())

        with pytest.raises(SynthesisUnavailable):
            await pipeline.generate_recipe(GenerationRequest(ingredients=["rice"]))
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_fatal_failure_is_rejected_input(self, pipeline_config):
        gateway = ScriptedGateway(recipe=[GatewayError(FailureSignal.BAD_REQUEST, "400", status_code=400)])

        with pytest.raises(SynthesisRejectedInput) as exc:
            await make_pipeline(gateway, pipeline_config).generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert exc.value.signal is FailureSignal.BAD_REQUEST
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_safety_block_has_specific_message(self, pipeline_config):
        gateway = ScriptedGateway(recipe=[GatewayError(FailureSignal.SAFETY_BLOCKED, "blocked")])

        with pytest.raises(SynthesisRejectedInput) as exc:
            await make_pipeline(gateway, pipeline_config).generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert "safety" in exc.value.message

    @pytest.mark.asyncio
    async def test_unexpected_error_is_rejected_input(self, pipeline_config):
        gateway = ScriptedGateway(recipe=[RuntimeError("sdk bug")])

        with pytest.raises(SynthesisRejectedInput):
            await make_pipeline(gateway, pipeline_config).generate_recipe(GenerationRequest(ingredients=["rice"]))

    @pytest.mark.asyncio
    async def test_malformed_json_surfaces_unchanged(self, pipeline_config):
        gateway = ScriptedGateway(recipe=["Sorry, I can't help with that."])

        with pytest.raises(MalformedJSON) as exc:
            await make_pipeline(gateway, pipeline_config).generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert exc.value.length == len("Sorry, I can't help with that.")

    @pytest.mark.asyncio
    async def test_deeply_nested_output_is_malformed(self, pipeline_config):
        gateway = ScriptedGateway(recipe=["[" * 100000 + "]" * 100000])
        states = []
        pipeline = make_pipeline(gateway, pipeline_config, on_transition=lambda rid, state: states.append(state))

        with pytest.raises(MalformedJSON):
            await pipeline.generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert states[-2:] == [PipelineState.VALIDATING, PipelineState.REJECTED]

    @pytest.mark.asyncio
    async def test_schema_violation_not_patched_up(self, pipeline_config, valid_recipe_data):
        del valid_recipe_data["title"]
        gateway = ScriptedGateway(recipe=[json.dumps(valid_recipe_data)])
        states = []
        pipeline = make_pipeline(gateway, pipeline_config, on_transition=lambda rid, state: states.append(state))

        with pytest.raises(SchemaViolation) as exc:
            await pipeline.generate_recipe(GenerationRequest(ingredients=["rice"]))

        assert exc.value.fields == ["title"]
        assert states[-2:] == [PipelineState.VALIDATING, PipelineState.REJECTED]
        assert len(gateway.calls) == 1

    @pytest.mark.asyncio
    async def test_core_ingredient_screen(self, pipeline_config, recipe_text):
        pipeline_config.REQUIRE_CORE_INGREDIENT = True
        gateway = ScriptedGateway(recipe=[recipe_text])
        pipeline = make_pipeline(gateway, pipeline_config)

        with pytest.raises(MissingCoreIngredient):
            await pipeline.generate_recipe(GenerationRequest(ingredients=["salt", "butter"]))
        assert gateway.calls == []

        recipe = await pipeline.generate_recipe(GenerationRequest(ingredients=["salt", "paneer"]))
        assert recipe.title


class TestRecognizeIngredients:
    @pytest.mark.asyncio
    async def test_returns_parsed_list(self, pipeline_config, png_b64):
        gateway = ScriptedGateway(recognize=["Tomato, Basil, mozzarella"])

        ingredients = await make_pipeline(gateway, pipeline_config).recognize_ingredients(png_b64)

        assert ingredients == ["tomato", "basil", "mozzarella"]
        assert gateway.calls == [("recognize", 0, "image/png")]

    @pytest.mark.asyncio
    async def test_invalid_image_uses_no_credential(self, pipeline_config):
        gateway = ScriptedGateway()
        payload = base64.b64encode(b"definitely not an image").decode("ascii")

        with pytest.raises(InvalidImage):
            await make_pipeline(gateway, pipeline_config).recognize_ingredients(payload)
        assert gateway.calls == []


class TestParseFilters:
    """Test free-text preference parsing."""

    @pytest.mark.asyncio
    async def test_returns_filters(self, pipeline_config):
        gateway = ScriptedGateway(filters=['{"cuisine": "Thai", "diet": "Vegan", "spiceLevel": "Hot"}'])

        filters = await make_pipeline(gateway, pipeline_config).parse_filters("spicy vegan thai dinner")

        assert filters == PreferenceFilters(cuisine="Thai", diet="Vegan", spice_level="Hot")
        assert 'User: "spicy vegan thai dinner"' in gateway.calls[0][2]

    @pytest.mark.asyncio
    async def test_filters_merge_into_request(self, pipeline_config):
        gateway = ScriptedGateway(filters=['{"mealType": "Breakfast", "skill": "beginner"}'])

        filters = await make_pipeline(gateway, pipeline_config).parse_filters("an easy breakfast")
        request = filters.apply_to(GenerationRequest(ingredients=["egg"], cuisine_style="French"))

        assert request.meal_category == "Breakfast"
        assert request.skill_level is SkillLevel.BEGINNER
        assert request.cuisine_style == "French"
        assert request.ingredients == ["egg"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_blank_text_makes_no_gateway_call(self, pipeline_config, text):
        gateway = ScriptedGateway()

        with pytest.raises(EmptyInput):
            await make_pipeline(gateway, pipeline_config).parse_filters(text)
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_fails_over_to_second_credential(self, pipeline_config):
        gateway = ScriptedGateway(filters=[rate_limited(), '{"diet": "Keto"}'])

        filters = await make_pipeline(gateway, pipeline_config).parse_filters("keto please")

        assert filters.diet == "Keto"
        assert [position for _, position, _ in gateway.calls] == [0, 1]

    @pytest.mark.asyncio
    async def test_exhaustion_is_synthesis_unavailable(self, pipeline_config):
        gateway = ScriptedGateway(filters=[rate_limited(), rate_limited()])

        with pytest.raises(SynthesisUnavailable) as exc:
            await make_pipeline(gateway, pipeline_config).parse_filters("keto please")
        assert exc.value.attempts == 2

    @pytest.mark.asyncio
    async def test_malformed_answer_surfaces(self, pipeline_config):
        gateway = ScriptedGateway(filters=["Thai, vegan"])

        with pytest.raises(MalformedJSON):
            await make_pipeline(gateway, pipeline_config).parse_filters("vegan thai")

    @pytest.mark.asyncio
    async def test_non_object_answer_is_violation(self, pipeline_config):
        gateway = ScriptedGateway(filters=['["Thai"]'])

        with pytest.raises(SchemaViolation):
            await make_pipeline(gateway, pipeline_config).parse_filters("thai")


class TestSynthesizeImage:
    @pytest.mark.asyncio
    async def test_returns_base64(self, pipeline_config, png_bytes):
        gateway = ScriptedGateway(image=[png_bytes])

        data = await make_pipeline(gateway, pipeline_config).synthesize_image("A plate of golden dumplings")

        assert base64.b64decode(data) == png_bytes
        _, _, prompt = gateway.calls[0]
        assert prompt.startswith("A professional food photography shot of A plate of golden dumplings")

    @pytest.mark.asyncio
    async def test_blank_prompt_rejected(self, pipeline_config):
        gateway = ScriptedGateway()
        with pytest.raises(EmptyInput):
            await make_pipeline(gateway, pipeline_config).synthesize_image("   ")
        assert gateway.calls == []

    @pytest.mark.asyncio
    async def test_no_image_surfaces(self, pipeline_config):
        gateway = ScriptedGateway(image=[NoImageProduced()])
        with pytest.raises(NoImageProduced):
            await make_pipeline(gateway, pipeline_config).synthesize_image("A plate of golden dumplings")


class TestGenerateRecipeWithImage:
    """Test the combined recipe + image flow."""

    @pytest.mark.asyncio
    async def test_image_attached_as_data_uri(self, pipeline_config, recipe_text, png_bytes):
        gateway = ScriptedGateway(recipe=[recipe_text], image=[png_bytes])

        recipe = await make_pipeline(gateway, pipeline_config).generate_recipe_with_image(
            GenerationRequest(ingredients=["chicken", "rice"])
        )

        assert recipe.image_url.startswith("data:image/png;base64,")
        assert [op for op, _, _ in gateway.calls] == ["recipe", "image"]

    @pytest.mark.asyncio
    async def test_image_failure_keeps_recipe(self, pipeline_config, recipe_text, valid_recipe_data):
        gateway = ScriptedGateway(recipe=[recipe_text], image=[NoImageProduced()])

        recipe = await make_pipeline(gateway, pipeline_config).generate_recipe_with_image(
            GenerationRequest(ingredients=["chicken", "rice"])
        )

        assert recipe.title == valid_recipe_data["title"]
        assert recipe.image_url is None

    @pytest.mark.asyncio
    async def test_image_failure_uses_placeholder(self, pipeline_config, recipe_text):
        pipeline_config.PLACEHOLDER_IMAGE_URL = "https://example.com/placeholder.png"
        gateway = ScriptedGateway(recipe=[recipe_text], image=[rate_limited(), rate_limited()])

        recipe = await make_pipeline(gateway, pipeline_config).generate_recipe_with_image(
            GenerationRequest(ingredients=["chicken"])
        )

        assert recipe.image_url == "https://example.com/placeholder.png"

    @pytest.mark.asyncio
    async def test_concurrent_recipe_and_failed_image(self, pipeline_config, recipe_text, valid_recipe_data):
        """Test that an image failure running alongside recipe generation leaves the recipe intact."""
        gateway = ScriptedGateway(recipe=[recipe_text], image=[NoImageProduced()])
        pipeline = make_pipeline(gateway, pipeline_config)

        recipe, image = await asyncio.gather(
            pipeline.generate_recipe(GenerationRequest(ingredients=["chicken", "rice"])),
            pipeline.synthesize_image(valid_recipe_data["imagePrompt"]),
            return_exceptions=True,
        )

        assert isinstance(recipe, SynthesizedRecipe)
        assert recipe.title == valid_recipe_data["title"]
        assert recipe.image_url is None
        assert isinstance(image, NoImageProduced)
        assert sorted(op for op, _, _ in gateway.calls) == ["image", "recipe"]


class TestHandle:
    """Test action dispatch."""

    def test_every_action_has_a_handler(self):
        assert set(ACTION_HANDLERS) == set(get_args(get_args(ChefAction)[0]))

    @pytest.mark.asyncio
    async def test_generate_action(self, pipeline_config, recipe_text):
        pipeline = make_pipeline(ScriptedGateway(recipe=[recipe_text]), pipeline_config)

        result = await pipeline.handle({"action": "generate", "payload": {"ingredients": ["chicken"]}})

        assert result["status"] == "success"
        assert result["recipe"]["mealType"] == "Dinner"
        assert "createdAt" in result["recipe"]

    @pytest.mark.asyncio
    async def test_typed_action_accepted(self, pipeline_config, recipe_text):
        pipeline = make_pipeline(ScriptedGateway(recipe=[recipe_text]), pipeline_config)
        action = GenerateTextAction(payload=GenerationRequest(ingredients=["rice"]))

        assert (await pipeline.handle(action))["status"] == "success"

    @pytest.mark.asyncio
    async def test_analyze_action(self, pipeline_config, png_b64):
        pipeline = make_pipeline(ScriptedGateway(recognize=["egg, spinach"]), pipeline_config)

        result = await pipeline.handle({"action": "analyze", "payload": {"image": png_b64}})

        assert result == {"status": "success", "ingredients": ["egg", "spinach"], "text": "egg, spinach"}

    @pytest.mark.asyncio
    async def test_image_action(self, pipeline_config, png_bytes):
        pipeline = make_pipeline(ScriptedGateway(image=[png_bytes]), pipeline_config)

        result = await pipeline.handle({"action": "image", "payload": {"prompt": "Golden dumplings"}})

        assert result["status"] == "success"
        assert base64.b64decode(result["data"]) == png_bytes

    @pytest.mark.asyncio
    async def test_filters_action(self, pipeline_config):
        gateway = ScriptedGateway(filters=['{"cuisine": "Italian", "spiceLevel": ""}'])
        pipeline = make_pipeline(gateway, pipeline_config)

        result = await pipeline.handle({"action": "filters", "payload": {"text": "mild italian"}})

        assert result == {"status": "success", "filters": {"cuisine": "Italian"}}

    @pytest.mark.asyncio
    async def test_unknown_action_rejected(self, pipeline_config):
        pipeline = make_pipeline(ScriptedGateway(), pipeline_config)
        with pytest.raises(ValidationError):
            await pipeline.handle({"action": "bake", "payload": {}})


class TestHealth:
    def test_healthy(self, pipeline_config):
        report = make_pipeline(ScriptedGateway(), pipeline_config).health()
        assert report.status.value == "healthy"
        assert report.credentials == 2

    def test_unconfigured(self, pipeline_config):
        pipeline = make_pipeline(ScriptedGateway(), pipeline_config, pool=CredentialPool())
        assert pipeline.health().status.value == "unconfigured"
        with pytest.raises(Unconfigured):
            pipeline.ensure_configured()
