"""Prompt construction for the synthesis pipeline.

Provides factory functions that turn a GenerationRequest into the instruction
string for the recipe model, and a recipe's imagePrompt into a photography brief
for the image model.
"""

from src.models.models import GenerationRequest


INGREDIENT_RECOGNITION_PROMPT = (
    "Identify the food items visible in this image. "
    "Return ONLY a comma-separated list of ingredient names, lowercase, with no quantities, "
    "numbering or extra commentary. Example: tomato, basil, mozzarella"
)


def _get_constraints_section(request: GenerationRequest) -> str:
    """Render the request's constraints as a bullet list."""
    return f"""
## Constraints
- Available Ingredients: {", ".join(request.ingredients)}
- Dietary Preference: {request.dietary_constraint}
- Cuisine Style: {request.cuisine_style}
- Meal Type: {request.meal_category}
- Skill Level: {request.skill_level.value}
- Spice Level: {request.spice_level}
- Cooking Style: {request.cooking_preference}
"""


def _get_output_section() -> str:
    return """
## Output Format (MANDATORY)
Return a single JSON object matching the Recipe shape, with these keys:
- title (non-empty), description, cuisine, mealType, prepTime, cookTime
- servings (positive integer), difficulty ("Beginner", "Intermediate" or "Advanced")
- ingredients: list of {name, amount, unit}, at least one item
- instructions: list of step strings, at least one step, no leading numbers
- tips, substitutions: lists of strings
- servingSuggestions: string
- nutrition: {calories (number, per serving), protein, carbs, fat (strings such as "12g")}
- imagePrompt: a vivid one-sentence visual description of the finished dish (at least 10 characters)
Return ONLY the JSON object. No Markdown, no commentary.
"""


def build_recipe_prompt(request: GenerationRequest) -> str:
    """Build the full instruction string for one recipe generation.

    States the model's role, lists every constraint from the request, and
    demands output in the Recipe shape.

    Args:
        request: Normalized generation request with at least one ingredient.

    Returns:
        str: Prompt text for the recipe model.
    """
    role = """You are ChefAI, an intelligent recipe companion.
Generate one high-quality, practical recipe for a home cook.
"""
    guidelines = f"""
## Guidelines
- Use ONLY the available ingredients plus basic kitchen staples (water, oil, salt, pepper).
- Respect the dietary preference strictly; never include a conflicting ingredient.
- Match the instructions to a {request.skill_level.value.lower()} cook: clear, ordered, practical.
- Include specific serving suggestions and optional substitutions.
- No long explanations or fluff.
"""
    return role + _get_constraints_section(request) + guidelines + _get_output_section()


def build_image_prompt(image_prompt: str) -> str:
    """Wrap a recipe's imagePrompt in a food photography brief."""
    return (
        f"A professional food photography shot of {image_prompt.strip().rstrip('.')}. "
        "Gourmet, minimalist plating, soft natural light, shallow depth of field, 4k."
    )


def build_filter_prompt(text: str) -> str:
    """Ask the model to pull recipe preferences out of a free-text request."""
    return f"""Parse this cooking request into recipe preferences.
Keys: cuisine, diet, mealType, skill ("Beginner", "Intermediate" or "Advanced"), spiceLevel, cookingPreference.
Include only the keys the request mentions or clearly implies.
User: "{text.strip()}"
Return ONLY JSON."""
