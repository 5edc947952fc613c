"""
Static agent profiles: classification, display names, keyword sets and
related-agent tables used by context scoring and handoff planning.
"""

from enum import Enum
from typing import Dict, FrozenSet, List

from concord.agents.base import AgentRef, AgentType, agent_key


class AgentCategory(str, Enum):
    """Coarse agent classes that drive handoff planning."""
    CO_AGENT = "co_agent"
    FUNCTIONAL = "functional"
    UNKNOWN = "unknown"


CO_AGENTS: FrozenSet[str] = frozenset({
    AgentType.CO_FOUNDER.value,
    AgentType.CO_INVESTOR.value,
    AgentType.CO_BUILDER.value,
})

FUNCTIONAL_AGENTS: FrozenSet[str] = frozenset({
    AgentType.BUSINESS_ADVISOR.value,
    AgentType.INVESTMENT_ANALYST.value,
    AgentType.CREDIT_ANALYST.value,
    AgentType.IMPACT_ANALYST.value,
    AgentType.PROGRAM_MANAGER.value,
    AgentType.PLATFORM_ORCHESTRATOR.value,
})

DISPLAY_NAMES: Dict[str, str] = {
    AgentType.CO_FOUNDER.value: "Co-Founder™",
    AgentType.CO_INVESTOR.value: "Co-Investor™",
    AgentType.CO_BUILDER.value: "Co-Builder™",
    AgentType.BUSINESS_ADVISOR.value: "Business Advisor",
    AgentType.INVESTMENT_ANALYST.value: "Investment Analyst",
    AgentType.CREDIT_ANALYST.value: "Credit Analyst",
    AgentType.IMPACT_ANALYST.value: "Impact Analyst",
    AgentType.PROGRAM_MANAGER.value: "Program Manager",
    AgentType.PLATFORM_ORCHESTRATOR.value: "Platform Orchestrator",
}

AGENT_KEYWORDS: Dict[str, List[str]] = {
    AgentType.CO_FOUNDER.value: ["strategy", "business", "entrepreneur", "startup"],
    AgentType.CO_INVESTOR.value: ["investment", "portfolio", "deal", "financial"],
    AgentType.CO_BUILDER.value: ["ecosystem", "partnership", "program", "network"],
    AgentType.BUSINESS_ADVISOR.value: ["business", "strategy", "operations", "growth"],
    AgentType.INVESTMENT_ANALYST.value: ["investment", "analysis", "valuation", "risk"],
    AgentType.CREDIT_ANALYST.value: ["credit", "financial", "risk", "underwriting"],
    AgentType.IMPACT_ANALYST.value: ["impact", "social", "environmental", "sustainability"],
    AgentType.PROGRAM_MANAGER.value: ["program", "management", "optimization", "partnership"],
}

RELATED_AGENTS: Dict[str, List[str]] = {
    AgentType.CO_FOUNDER.value: [AgentType.BUSINESS_ADVISOR.value, AgentType.PROGRAM_MANAGER.value],
    AgentType.CO_INVESTOR.value: [AgentType.INVESTMENT_ANALYST.value, AgentType.CREDIT_ANALYST.value],
    AgentType.CO_BUILDER.value: [AgentType.PROGRAM_MANAGER.value, AgentType.IMPACT_ANALYST.value],
    AgentType.BUSINESS_ADVISOR.value: [AgentType.CO_FOUNDER.value, AgentType.PROGRAM_MANAGER.value],
    AgentType.INVESTMENT_ANALYST.value: [AgentType.CO_INVESTOR.value, AgentType.CREDIT_ANALYST.value],
    AgentType.CREDIT_ANALYST.value: [AgentType.INVESTMENT_ANALYST.value, AgentType.CO_INVESTOR.value],
    AgentType.IMPACT_ANALYST.value: [AgentType.CO_BUILDER.value, AgentType.PROGRAM_MANAGER.value],
    AgentType.PROGRAM_MANAGER.value: [AgentType.CO_BUILDER.value, AgentType.BUSINESS_ADVISOR.value],
}


def classify_agent(agent: AgentRef) -> AgentCategory:
    key = agent_key(agent)
    if key in CO_AGENTS:
        return AgentCategory.CO_AGENT
    if key in FUNCTIONAL_AGENTS:
        return AgentCategory.FUNCTIONAL
    return AgentCategory.UNKNOWN


def is_co_agent(agent: AgentRef) -> bool:
    return agent_key(agent) in CO_AGENTS


def is_functional_agent(agent: AgentRef) -> bool:
    return agent_key(agent) in FUNCTIONAL_AGENTS


def display_name(agent: AgentRef) -> str:
    key = agent_key(agent)
    return DISPLAY_NAMES.get(key, key.replace("_", " ").title())


def agent_keywords(agent: AgentRef) -> List[str]:
    return AGENT_KEYWORDS.get(agent_key(agent), [])


def are_related(source: AgentRef, target: AgentRef) -> bool:
    """True when ``source`` is listed as related to ``target``."""
    return agent_key(source) in RELATED_AGENTS.get(agent_key(target), [])
