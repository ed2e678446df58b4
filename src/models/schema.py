"""Response schema handed to the recipe model as a generation constraint.

This biases the model toward the Recipe shape; it is not a validator. Output
is still untrusted and goes through ``src.pipeline.validator``.
"""

from google.genai import types


def _string() -> types.Schema:
    return types.Schema(type=types.Type.STRING)


def _string_list() -> types.Schema:
    return types.Schema(type=types.Type.ARRAY, items=_string())


INGREDIENT_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "name": _string(),
        "amount": _string(),
        "unit": _string(),
    },
    required=["name", "amount", "unit"],
)

NUTRITION_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "calories": types.Schema(type=types.Type.NUMBER),
        "protein": _string(),
        "carbs": _string(),
        "fat": _string(),
    },
    required=["calories", "protein", "carbs", "fat"],
)

RECIPE_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "title": _string(),
        "description": _string(),
        "cuisine": _string(),
        "mealType": _string(),
        "prepTime": _string(),
        "cookTime": _string(),
        "servings": types.Schema(type=types.Type.INTEGER),
        "difficulty": types.Schema(
            type=types.Type.STRING,
            enum=["Beginner", "Intermediate", "Advanced"],
        ),
        "ingredients": types.Schema(type=types.Type.ARRAY, items=INGREDIENT_SCHEMA),
        "instructions": _string_list(),
        "tips": _string_list(),
        "substitutions": _string_list(),
        "servingSuggestions": _string(),
        "nutrition": NUTRITION_SCHEMA,
        "imagePrompt": _string(),
    },
    required=[
        "title", "description", "mealType", "prepTime", "cookTime",
        "ingredients", "instructions", "nutrition", "imagePrompt",
        "servings", "difficulty",
    ],
)

# No required keys: only preferences the text mentions come back
FILTER_RESPONSE_SCHEMA = types.Schema(
    type=types.Type.OBJECT,
    properties={
        "cuisine": _string(),
        "diet": _string(),
        "mealType": _string(),
        "skill": types.Schema(
            type=types.Type.STRING,
            enum=["Beginner", "Intermediate", "Advanced"],
        ),
        "spiceLevel": _string(),
        "cookingPreference": _string(),
    },
)
