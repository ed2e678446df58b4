#!/usr/bin/env python3
"""Ad hoc query runner for the Chef Synthesis Service.

Run the pipeline directly without starting the HTTP server.

Usage:
    python query.py chicken rice
    python query.py --diet Vegetarian --cuisine Italian pasta garlic "olive oil"
    python query.py --skill Beginner --meal Breakfast eggs spinach
    python query.py --ask "something spicy and quick" tofu rice   # Preferences from free text
    python query.py --image-out dish.png chicken rice   # Also synthesize a picture
    python query.py --analyze images/fridge.jpg          # Recognize ingredients only
    python query.py --debug chicken rice                 # Show full JSON recipe

Features:
- Recipe generation with failover across configured credentials
- Free-text preferences parsed by the model and laid over the flags
- Markdown rendering of the validated recipe
- Optional image synthesis written to a file
- Ingredient recognition from a local photo
"""

import asyncio
import base64
import sys
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown

from src.models.errors import SynthesisError
from src.models.models import GenerationRequest, Recipe, SynthesizedRecipe
from src.pipeline.synthesis import SynthesisPipeline
from src.utils.logger import logger

console = Console()

USAGE = (
    'Usage: python query.py [--diet D] [--cuisine C] [--meal M] [--skill S] [--ask TEXT] '
    '[--image-out PATH] [--debug] <ingredient> [<ingredient> ...]\n'
    '       python query.py --analyze <image path>'
)

VALUE_FLAGS = {
    "--diet": "dietary_constraint",
    "--cuisine": "cuisine_style",
    "--meal": "meal_category",
    "--skill": "skill_level",
}


def recipe_to_markdown(recipe: Recipe) -> str:
    """Render a validated recipe as Markdown."""
    lines = [
        f"# {recipe.title}",
        "",
        recipe.description,
        "",
        f"**Cuisine:** {recipe.cuisine} | **Meal:** {recipe.meal_type} | "
        f"**Difficulty:** {recipe.difficulty.value} | **Serves:** {recipe.servings}",
        f"**Prep:** {recipe.prep_time} | **Cook:** {recipe.cook_time}",
        "",
        "## Ingredients",
    ]
    lines.extend(f"- {item.amount} {item.unit} {item.name}".replace(" units ", " ") for item in recipe.ingredients)
    lines.extend(["", "## Instructions"])
    lines.extend(f"{idx}. {step}" for idx, step in enumerate(recipe.instructions, start=1))

    if recipe.tips:
        lines.extend(["", "## Tips"])
        lines.extend(f"- {tip}" for tip in recipe.tips)
    if recipe.substitutions:
        lines.extend(["", "## Substitutions"])
        lines.extend(f"- {sub}" for sub in recipe.substitutions)

    nutrition = recipe.nutrition
    lines.extend(
        [
            "",
            "## Nutrition (per serving)",
            f"{nutrition.calories:g} kcal | protein {nutrition.protein} | "
            f"carbs {nutrition.carbs} | fat {nutrition.fat}",
            "",
            f"*{recipe.serving_suggestions}*",
        ]
    )
    return "\n".join(lines)


async def _generate(request: GenerationRequest, image_out: str = None, ask: str = None) -> SynthesizedRecipe:
    pipeline = SynthesisPipeline()
    pipeline.ensure_configured()

    if ask:
        filters = await pipeline.parse_filters(ask)
        logger.info(f"Preferences from request: {filters.to_wire() or '(none)'}")
        request = filters.apply_to(request)

    if image_out:
        recipe = await pipeline.generate_recipe_with_image(request)
        if recipe.image_url and recipe.image_url.startswith("data:"):
            _, _, encoded = recipe.image_url.partition(",")
            Path(image_out).write_bytes(base64.b64decode(encoded))
            logger.info(f"✓ Image written to {image_out}")
        else:
            console.print("[yellow]No image was produced for this recipe[/yellow]")
    else:
        recipe = await pipeline.generate_recipe(request)

    return recipe


async def _analyze(image_path: str) -> list[str]:
    pipeline = SynthesisPipeline()
    pipeline.ensure_configured()
    payload = base64.b64encode(Path(image_path).read_bytes()).decode("ascii")
    return await pipeline.recognize_ingredients(payload)


def run_query(
    ingredients: list[str],
    preferences: dict,
    debug: bool = False,
    image_out: str = None,
    ask: str = None,
) -> None:
    """Generate one recipe and print it.

    Args:
        ingredients: Ingredient names from the command line.
        preferences: GenerationRequest fields set by flags.
        debug: If True, also print the full JSON recipe.
        image_out: If set, synthesize a picture and write it to this path.
        ask: Free-text request whose parsed preferences override the flags.
    """
    try:
        request = GenerationRequest(ingredients=ingredients, **preferences)
        logger.info(f"Generating recipe for: {', '.join(request.ingredients) or '(none)'}")
        recipe = asyncio.run(_generate(request, image_out=image_out, ask=ask))

        console.print()
        if debug:
            console.print("[bold cyan]Debug Mode: Full Recipe[/bold cyan]")
            console.print_json(data=recipe.to_wire())
            console.print()
        console.print(Markdown(recipe_to_markdown(recipe)))

    except SynthesisError as e:
        console.print(f"[red]✗ {e.code}: {e.message}[/red]")
        sys.exit(1)
    except KeyboardInterrupt:
        logger.info("\nQuery interrupted by user.")
        sys.exit(0)


def run_analyze(image_path: str) -> None:
    """Recognize ingredients in a local image and print them."""
    if not Path(image_path).exists():
        console.print(f"[red]✗ Error: Image file not found: {image_path}[/red]")
        sys.exit(1)
    try:
        ingredients = asyncio.run(_analyze(image_path))
    except SynthesisError as e:
        console.print(f"[red]✗ {e.code}: {e.message}[/red]")
        sys.exit(1)
    console.print(Markdown("\n".join(f"- {name}" for name in ingredients) or "*No ingredients recognized*"))


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(USAGE)
        sys.exit(1)

    preferences = {}
    debug_mode = False
    image_out = None
    ask = None
    analyze_path = None
    argv_start = 1

    while argv_start < len(sys.argv) and sys.argv[argv_start].startswith("--"):
        flag = sys.argv[argv_start]
        if flag == "--debug":
            debug_mode = True
            argv_start += 1
        elif flag in VALUE_FLAGS or flag in ("--image-out", "--analyze", "--ask"):
            argv_start += 1
            if argv_start >= len(sys.argv):
                print(f"Error: {flag} flag requires a value")
                sys.exit(1)
            value = sys.argv[argv_start]
            if flag == "--image-out":
                image_out = value
            elif flag == "--analyze":
                analyze_path = value
            elif flag == "--ask":
                ask = value
            else:
                preferences[VALUE_FLAGS[flag]] = value
            argv_start += 1
        else:
            print(f"Unknown flag: {flag}")
            sys.exit(1)

    if analyze_path:
        run_analyze(analyze_path)
        sys.exit(0)

    if argv_start >= len(sys.argv):
        print("Error: No ingredients provided")
        print(USAGE)
        sys.exit(1)

    run_query(sys.argv[argv_start:], preferences, debug=debug_mode, image_out=image_out, ask=ask)
