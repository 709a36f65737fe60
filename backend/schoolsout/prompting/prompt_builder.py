"""
Prompt construction for the two generation stages.

Stage 1 (search) asks a grounded model for plain-text activity records with
their landing-page URLs. Stage 2 (conversion) asks an ungrounded model to
reformat that text, and only that text, into the Activity JSON array.

Builders are pure: identical inputs give identical prompts, no I/O. Wording
changes go into a new builder version so pipeline code never changes with it.
"""

from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from schoolsout.models.search_query import SearchQuery


SEARCH_SYSTEM_INSTRUCTION = (
    "You are a technical data extraction agent. Your primary goal is to find specific "
    "events and their official source URLs. When using Google Search, you must extract "
    "the landing page URL from the search result metadata. Never state that a URL is "
    "'not available' if a relevant search result is present."
)

CONVERSION_SYSTEM_INSTRUCTION = (
    "You are a data reformatting assistant. Parse the provided Search Results text and "
    "convert it exactly into a JSON array. Do not generate new information, perform "
    "searches, or modify any details. Preserve all URLs and text verbatim from the "
    "provided data."
)

URL_INSTRUCTIONS = """### CRITICAL INSTRUCTIONS FOR URLS:
1. For every activity identified, you MUST provide the direct 'official' URL (e.g., the website of the park, zoo, or organizer).
2. Look specifically at the 'source' link or 'metadata' attached to each search result snippet to find these URLs.
3. DO NOT state that the URL is 'not available' if a search result exists.
4. Format each entry as:
   - Name: [Activity Name]
   - Description: [1-2 sentences]
   - URL: [Direct Web Link]
   - Category: [Category type if available]
   - Location: [Specific venue/location name if available]
   - Price: [Price if available]
   - Age Range: [Suitable ages if available]
   - Date: [Date in yyyy-MM-dd format if available]"""

ACTIVITY_SCHEMA = """[
  {
    "id": "unique-id",
    "title": "Activity Title",
    "description": "Brief description of the activity",
    "category": "Category (e.g., Educational, Sports, Arts, Outdoor)",
    "location": "Location name",
    "ageRange": "Age range (e.g., 6-12 years)",
    "date": "Date in yyyy-MM-dd format or empty string if not available",
    "price": "Price (e.g., Free, $20, $10-$30) or empty string if not available",
    "imageUrl": "https://example.com/image.jpg or empty string if not available",
    "bookingUrl": "[Extracted URL from search results] - MUST be the exact URL from the Search Results above"
  }
]"""

CONVERSION_TEMPLATE = """Convert the following activity search results into a JSON array. DO NOT perform any new searches, generate new activities, or modify any information. Only parse and reformat the exact data provided in the Search Results section below into the specified JSON structure. Preserve all URLs exactly as they appear in the search results.

Search Results:
{search_results}

Please respond with ONLY a JSON array of activities in the following format (no additional text, no markdown):
{schema}

CRITICAL REQUIREMENTS:
- Generate a unique ID for each activity (e.g., "activity-1", "activity-2")
- Use the EXACT URLs from the search results for bookingUrl - copy them verbatim without changes
- Category: Extract from the search results only (Educational, Sports, Arts, Outdoor, Entertainment, Technology, Science, etc.)
- Location: Extract the specific venue/location name from the search results only
- Price: Extract price information from the search results only (e.g., "Free", "$25", "$15-$30", "From $20")
- If any field is not present in the search results, use an empty string ""
- Ensure all JSON is valid and properly formatted
- DO NOT add, remove, or invent any information not present in the Search Results"""


@dataclass(frozen=True)
class Prompts:
    search_prompt: str
    conversion_prompt: str


class ActivityPromptBuilder:
    """Versioned prompt strategy: SearchQuery -> (search prompt, conversion prompt)."""

    version = "2"
    search_system_instruction = SEARCH_SYSTEM_INSTRUCTION
    conversion_system_instruction = CONVERSION_SYSTEM_INSTRUCTION

    def __init__(self, today: Callable[[], date] = date.today):
        self._today = today

    def search_year(self, query: SearchQuery) -> str:
        if query.date_range is not None:
            return query.date_range.year
        return str(self._today().year)

    def build_search_prompt(self, query: SearchQuery) -> str:
        prompt = f"Search for 5-10 {query.query.strip()} activities"

        if query.age_range is not None:
            prompt += f" for kids aged {query.age_range.min}-{query.age_range.max}"

        if query.location and query.location.strip():
            prompt += f" in {query.location.strip()}"

        prompt += f" for school holidays in {self.search_year(query)}.\n\n"
        return prompt + URL_INSTRUCTIONS

    def build_conversion_prompt(self, search_results: str) -> str:
        # search_results goes in verbatim; str.format does not re-parse it
        return CONVERSION_TEMPLATE.format(search_results=search_results, schema=ACTIVITY_SCHEMA)

    def build(self, query: SearchQuery, search_results: str = "") -> Prompts:
        return Prompts(
            search_prompt=self.build_search_prompt(query),
            conversion_prompt=self.build_conversion_prompt(search_results),
        )


def get_prompt_builder(version: Optional[str] = None) -> ActivityPromptBuilder:
    """Return the builder for ``version`` (latest when omitted)."""
    builders = {ActivityPromptBuilder.version: ActivityPromptBuilder}
    if version is None:
        version = ActivityPromptBuilder.version
    try:
        return builders[version]()
    except KeyError:
        raise ValueError(f"Unknown prompt builder version: {version}") from None
