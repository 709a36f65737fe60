from schoolsout.graph.agents import conversion_agent, search_agent
from schoolsout.graph.postprocess.refine_activities import TIER_STRICT
from schoolsout.graph.state import RunState
from schoolsout.integrations.gemini_client import GeminiClient
from schoolsout.models.search_query import SearchQuery
from schoolsout.prompting.prompt_builder import ActivityPromptBuilder

from conftest import ACTIVITIES_JSON, STAGE1_INTRO, STAGE1_TEXT, FakeResponse, FakeSession, gemini_envelope


def _client(*texts):
    return GeminiClient("test-key", session=FakeSession(FakeResponse(200, gemini_envelope(*texts))))


def test_search_agent_returns_new_logs():
    state = RunState(query=SearchQuery(query="zoo"))

    update = search_agent(state, _client(STAGE1_INTRO, STAGE1_TEXT), ActivityPromptBuilder())

    assert update["search_results"] == STAGE1_TEXT
    assert update["logs"] == [{"stage": "Search", "parts": 2, "chars": len(STAGE1_TEXT)}]
    assert state.logs == []


def test_conversion_agent_returns_new_logs():
    earlier = {"stage": "Search", "parts": 1, "chars": 10}
    state = RunState(query=SearchQuery(query="zoo"), search_results=STAGE1_TEXT, logs=[earlier])

    update = conversion_agent(state, _client(ACTIVITIES_JSON), ActivityPromptBuilder())

    assert len(update["activities"]) == 3
    assert update["logs"] == [earlier, {"stage": "Conversion", "tier": TIER_STRICT, "refined_count": 3}]
    assert state.logs == [earlier]
    assert update["logs"] is not state.logs
