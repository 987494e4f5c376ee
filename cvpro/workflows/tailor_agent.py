"""Tailor pipeline: structure the base resume when only raw text is given, then tailor it to the job."""

from typing import Any, TypedDict

from langgraph.graph import END, START, StateGraph

from cvpro.schemas.resume import ResumeConfig, ResumeData
from cvpro.services.ai import ResumeAI


class TailorState(TypedDict, total=False):
    resume_text: str
    base: dict[str, Any] | None
    job_description: str
    config: dict[str, Any]
    tailored: dict[str, Any] | None


def build_tailor_graph(ai: ResumeAI):
    async def _structure(state: TailorState) -> dict:
        base = await ai.structure(state.get("resume_text") or "")
        return {"base": base.model_dump(by_alias=True)}

    async def _tailor(state: TailorState) -> dict:
        base = ResumeData.model_validate(state["base"])
        config = ResumeConfig.model_validate(state.get("config") or {})
        tailored = await ai.tailor(base, state["job_description"], config)
        return {"tailored": tailored.model_dump(by_alias=True)}

    def _route(state: TailorState) -> str:
        return "tailor" if state.get("base") else "structure"

    builder = StateGraph(TailorState)
    builder.add_node("structure", _structure)
    builder.add_node("tailor", _tailor)
    builder.add_conditional_edges(START, _route, {"structure": "structure", "tailor": "tailor"})
    builder.add_edge("structure", "tailor")
    builder.add_edge("tailor", END)
    return builder.compile()


async def run_tailor(
    ai: ResumeAI,
    job_description: str,
    config: ResumeConfig,
    base: ResumeData | None = None,
    resume_text: str = "",
) -> tuple[ResumeData, ResumeData]:
    """Return (base, tailored). Errors from the AI layer propagate unchanged."""
    graph = build_tailor_graph(ai)
    initial: TailorState = {
        "resume_text": resume_text,
        "base": base.model_dump(by_alias=True) if base else None,
        "job_description": job_description,
        "config": config.model_dump(by_alias=True),
        "tailored": None,
    }
    result = await graph.ainvoke(initial)
    return ResumeData.model_validate(result["base"]), ResumeData.model_validate(result["tailored"])
