import logging

from .state import RunState
from schoolsout.graph.postprocess.refine_activities import assemble_search_text, refine_activities
from schoolsout.integrations.exceptions import EmptyResponseError
from schoolsout.integrations.gemini_client import GenerateContentRequest


logger = logging.getLogger(__name__)


def search_agent(state: RunState, client, prompt_builder) -> dict:
    """Stage 1: grounded Google Search run that returns labelled plain-text records."""
    q = state.query
    logger.info("Searching with query: '%s'", q.query)
    if q.location:
        logger.info("Location filter: %s", q.location)
    if q.age_range:
        logger.info("Age range filter: %d-%d", q.age_range.min, q.age_range.max)
    if q.date_range:
        logger.info("Date range filter: %s to %s", q.date_range.start_date, q.date_range.end_date)

    prompt = prompt_builder.build_search_prompt(q)
    logger.debug("Stage 1 Search Prompt: %s", prompt)

    request = GenerateContentRequest.from_prompt(
        prompt,
        system_instruction=prompt_builder.search_system_instruction,
        grounded=True,
    )
    segments = client.generate_parts(request)
    search_results = assemble_search_text(segments)
    if not search_results.strip():
        raise EmptyResponseError("empty search results from Stage 1")

    logger.debug("Search results from Stage 1: %s", search_results)
    return {
        "search_results": search_results,
        "logs": state.logs + [{"stage": "Search", "parts": len(segments), "chars": len(search_results)}],
    }


def conversion_agent(state: RunState, client, prompt_builder) -> dict:
    """Stage 2: reformat the stage 1 text into the Activity JSON array, no tools."""
    prompt = prompt_builder.build_conversion_prompt(state.search_results)
    logger.debug("Stage 2 Conversion Prompt: %s", prompt)

    request = GenerateContentRequest.from_prompt(
        prompt,
        system_instruction=prompt_builder.conversion_system_instruction,
    )
    response_text = client.send(request)
    logger.debug("Stage 2 JSON conversion response: %s", response_text)

    activities, tier = refine_activities(response_text)
    return {
        "activities": activities,
        "logs": state.logs + [{"stage": "Conversion", "tier": tier, "refined_count": len(activities)}],
    }
