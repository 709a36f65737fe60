"""Minimal live smoke test for the search pipeline.

Needs a real Gemini key (GEMINI_API_KEY or Secret Manager via GOOGLE_CLOUD_PROJECT).
Run locally: `python backend/tests/smoke_search.py "science museum" Springfield`
"""

import sys

from schoolsout.config import load_settings
from schoolsout.integrations.gemini_client import GeminiClient
from schoolsout.models.search_query import SearchQuery
from schoolsout.graph.state import RunState
from schoolsout.graph.build_graph import build_graph


def main():
    query = SearchQuery(
        query=sys.argv[1] if len(sys.argv) > 1 else "science museum",
        location=sys.argv[2] if len(sys.argv) > 2 else None,
    )
    client = GeminiClient.from_settings(load_settings())
    graph = build_graph(client)
    result = graph.invoke(RunState(query=query))
    activities = result["activities"]
    print("Activities:", len(activities))
    for a in activities:
        print(f"- {a.title} | {a.category} | {a.booking_url}")
    print("Logs:", result.get("logs", []))


if __name__ == "__main__":
    main()
