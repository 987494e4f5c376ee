# LangGraph workflows
from cvpro.workflows.tailor_agent import run_tailor

__all__ = ["run_tailor"]
