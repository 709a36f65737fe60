from functools import partial

from langgraph.graph import StateGraph, END
from schoolsout.graph.state import RunState
from schoolsout.graph.agents import search_agent, conversion_agent
from schoolsout.prompting.prompt_builder import get_prompt_builder


def build_graph(client, prompt_builder=None):
    """search_agent -> conversion_agent; stage 2 only ever sees stage 1's text."""
    prompt_builder = prompt_builder or get_prompt_builder()
    g = StateGraph(RunState)

    g.add_node("search_agent", partial(search_agent, client=client, prompt_builder=prompt_builder))
    g.add_node("conversion_agent", partial(conversion_agent, client=client, prompt_builder=prompt_builder))

    g.set_entry_point("search_agent")
    g.add_edge("search_agent", "conversion_agent")
    g.add_edge("conversion_agent", END)

    return g.compile()
