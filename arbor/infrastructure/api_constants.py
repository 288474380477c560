"""
Content API endpoint constants and prompt templates.

Centralizing these values makes it easy to swap models, endpoints or the
wording of the generation prompts.
"""
from arbor.domain.models import Difficulty, Season


class GenerativeAPIEndpoints:
    """Generative content API endpoint paths."""

    BASE = "/v1beta/models"
    GENERATE_CONTENT = f"{BASE}/{{model}}:generateContent"

    @classmethod
    def generate_content(cls, model: str) -> str:
        """
        Get the generateContent endpoint for a model.

        Args:
            model: Model name

        Returns:
            Formatted endpoint path
        """
        return cls.GENERATE_CONTENT.format(model=model)


class APIConstants:
    """General API configuration constants."""

    API_KEY_HEADER = "x-goog-api-key"
    CONTENT_TYPE_JSON = "application/json"
    DEFAULT_IMAGE_MIME = "image/png"


DIFFICULTY_CRITERIA = {
    Difficulty.EASY: (
        "very common, iconic trees with distinct shapes and vibrant, classic autumn "
        "colors (e.g., Sugar Maple, English Oak, Silver Birch)."
    ),
    Difficulty.MEDIUM: (
        "a mix of well-known regional trees and some unique ornamental species "
        "(e.g., Ginkgo Biloba, Japanese Zelkova, American Sweetgum)."
    ),
    Difficulty.HARD: (
        "rare, endemic, or harder-to-identify species with subtle features or unique "
        "habitats (e.g., Wollemi Pine, Monkey Puzzle Tree, Dawn Redwood)."
    ),
}


def tree_pool_prompt(difficulty: Difficulty, count: int) -> str:
    return f"""
    Generate {count} distinct tree species that match this difficulty criteria: {DIFFICULTY_CRITERIA[difficulty]}
    For each tree, provide:
    1. commonName
    2. scientificName
    3. autumnDescription (vivid physical description of its autumn foliage for an image prompt)
    4. springDescription (vivid physical description of its spring appearance, flowers/new leaves, for an image prompt)
    5. funFact (2 concise, fascinating sentences about its ecology, history, or uses)
    6. habitats (an array of 5-8 major geographic coordinate objects with lat and lng where they naturally grow).

    Return as a JSON array of objects.
    """


def tree_image_prompt(description: str, season: Season) -> str:
    return (
        f"A professional, ultra-realistic nature photograph of a single {description}. "
        f"The lighting should be natural and cinematic, showcasing the tree's unique "
        f"{season.value} foliage textures and vibrant colors. Natural forest or park "
        f"background, 8k resolution, National Geographic style. No text in image."
    )


def fun_fact_prompt(common_name: str, scientific_name: str) -> str:
    return (
        f"Generate a single new, unique, and fascinating fun fact (maximum 2 concise "
        f"sentences) about the {common_name} ({scientific_name}). Focus on its unique "
        f"botanical properties, historical significance, or ecological role. "
        f"Return only the fact text."
    )


TREE_POOL_SCHEMA = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "commonName": {"type": "STRING"},
            "scientificName": {"type": "STRING"},
            "autumnDescription": {"type": "STRING"},
            "springDescription": {"type": "STRING"},
            "funFact": {"type": "STRING"},
            "habitats": {
                "type": "ARRAY",
                "items": {
                    "type": "OBJECT",
                    "properties": {
                        "lat": {"type": "NUMBER"},
                        "lng": {"type": "NUMBER"},
                    },
                    "required": ["lat", "lng"],
                },
            },
        },
        "required": [
            "commonName",
            "scientificName",
            "autumnDescription",
            "springDescription",
            "funFact",
            "habitats",
        ],
    },
}
