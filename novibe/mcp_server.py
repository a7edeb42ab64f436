from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from mcp.server.fastmcp import FastMCP

from novibe import repositories, services
from novibe.auth import CurrentUser
from novibe.config import get_settings
from novibe.credits import CreditLedger
from novibe.db import init_db, session_scope
from novibe.errors import NoVibeError
from novibe.llm import create_llm_client

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def novibe_lifespan(server: FastMCP) -> AsyncIterator[None]:
    init_db()
    yield


mcp = FastMCP(
    "No Vibe No Code",
    instructions=(
        "No Vibe No Code analyzes startup ideas with AI. Each analysis costs one credit. "
        "Start with get_credit_balance(), then list_ideas() to browse saved ideas, "
        "get_idea(id) for documents, and analyze_idea_tool(idea) to run a new analysis."
    ),
    lifespan=novibe_lifespan,
    json_response=True,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _current_user() -> tuple[CurrentUser | None, dict | None]:
    user_id = get_settings().mcp_user_id
    if not user_id:
        return None, {"error": "NOVIBE_MCP_USER_ID is not set"}
    return CurrentUser(user_id=user_id), None


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------


@mcp.resource("novibe://overview")
def novibe_overview() -> str:
    """Overview of the data model, credits and available analyses."""
    return json.dumps({
        "system": "No Vibe No Code: AI analysis of startup ideas and hackathon projects",
        "data_model": {
            "idea": "A submitted concept owned by one user. Has zero or more documents.",
            "document": "A generated artifact: startup_analysis, hackathon_analysis, prd, technical_design, architecture or roadmap.",
            "credits": "One credit per analysis. Admin tier is unlimited.",
        },
        "rubric": ["Market Demand", "Market Size", "Uniqueness", "Scalability", "Potential Profitability"],
        "workflow": [
            "1. get_credit_balance() to see remaining credits.",
            "2. list_ideas() to browse saved ideas.",
            "3. get_idea(id) for documents of one idea.",
            "4. analyze_idea_tool(idea, locale) to run a new startup analysis.",
        ],
    }, indent=2)


# ---------------------------------------------------------------------------
# Tools
# ---------------------------------------------------------------------------


@mcp.tool()
def list_ideas(status: str | None = None, source: str | None = None) -> list[dict] | dict:
    """List saved ideas.

    Args:
        status: Filter by project status: idea, in_progress, completed, archived.
        source: Filter by origin: manual or frankenstein.
    """
    user, err = _current_user()
    if err:
        return err
    with session_scope() as session:
        ideas = repositories.list_ideas(session, user.user_id, status=status, source=source)
        counts = repositories.count_documents_by_idea(session, user.user_id)
        return [repositories.idea_summary(i, counts.get(i.id, 0)) for i in ideas]


@mcp.tool()
def get_idea(idea_id: str) -> dict:
    """Get one idea with all of its documents."""
    user, err = _current_user()
    if err:
        return err
    with session_scope() as session:
        try:
            idea = repositories.find_idea_by_id(session, idea_id, user.user_id)
        except NoVibeError as exc:
            return {"error": exc.message}
        result = repositories.idea_summary(idea)
        result["documents"] = [repositories.document_summary(d) for d in idea.documents]
        return result


@mcp.tool()
async def analyze_idea_tool(idea: str, locale: str = "en") -> dict:
    """Run a startup viability analysis (costs one credit)."""
    user, err = _current_user()
    if err:
        return err
    with session_scope() as session:
        try:
            pipeline = services.AnalysisPipeline(session, create_llm_client())
            return await pipeline.analyze_idea(user, idea, locale)
        except NoVibeError as exc:
            return exc.to_dict()


@mcp.tool()
def get_credit_balance() -> dict:
    """Current credit balance and tier."""
    user, err = _current_user()
    if err:
        return err
    with session_scope() as session:
        return CreditLedger(session).get_balance(user.user_id)


@mcp.tool()
def get_dashboard_stats() -> dict:
    """Counts of ideas by status and source, documents by type, and the credit balance."""
    user, err = _current_user()
    if err:
        return err
    with session_scope() as session:
        return services.compute_dashboard_stats(session, CreditLedger(session), user.user_id)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main():
    """Run the No Vibe MCP server over stdio."""
    logging.basicConfig(level=get_settings().log_level)
    mcp.run()


if __name__ == "__main__":
    main()
