"""Shared fixtures for unit tests."""

import base64

import pytest

from src.pipeline.credentials import CredentialPool


# Smallest valid PNG (1x1 transparent pixel)
PNG_BYTES = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


@pytest.fixture
def valid_recipe_data():
    """A complete model response in wire (camelCase) form."""
    return {
        "title": "Garlic Chicken Rice Bowl",
        "description": "Juicy pan-seared chicken over fluffy rice.",
        "cuisine": "Asian Fusion",
        "mealType": "Dinner",
        "prepTime": "10 mins",
        "cookTime": "25 mins",
        "servings": 2,
        "difficulty": "Beginner",
        "ingredients": [
            {"name": "chicken", "amount": "300", "unit": "g"},
            {"name": "rice", "amount": "1", "unit": "cup"},
        ],
        "instructions": [
            "Rinse the rice and cook it in two cups of water.",
            "Season and sear the chicken until golden.",
            "Slice the chicken and serve over the rice.",
        ],
        "tips": ["Rest the chicken for five minutes before slicing."],
        "substitutions": ["Use brown rice for extra fibre."],
        "servingSuggestions": "Top with spring onions.",
        "nutrition": {"calories": 540, "protein": "38g", "carbs": "60g", "fat": "14g"},
        "imagePrompt": "A rustic bowl of golden chicken slices over steaming white rice",
    }


@pytest.fixture
def png_bytes():
    return PNG_BYTES


@pytest.fixture
def png_b64():
    return base64.b64encode(PNG_BYTES).decode("ascii")


@pytest.fixture
def three_key_pool():
    return CredentialPool(["key-alpha-0001", "key-beta-0002", "key-gamma-0003"])
