"""
Framework template registry.

Maps a symbolic conversational-framework identifier to the descriptive text
fragment used inside prompts. The registry is fixed at import time; lookups
are pure and never fail, unknown identifiers resolve to the default
reflective-questioning framing.
"""

import re
from types import MappingProxyType
from typing import List, Mapping, Optional

from rapidfuzz import fuzz

from .types import Framework

DEFAULT_FRAMEWORK_ID = "default"

# Minimum rapidfuzz ratio for accepting a misspelled identifier
FUZZY_THRESHOLD = 0.8

DEFAULT_FRAMEWORK = Framework(
    id=DEFAULT_FRAMEWORK_ID,
    name="reflective questioning",
    description="""Use reflective questioning:
- Mirror back the key points in the person's own words
- Highlight patterns and recurring themes
- Questions should be open-ended and invite deeper self-reflection""",
)

_FRAMEWORKS = (
    Framework(
        id="socratic",
        name="Socratic Questioning",
        description="""Use Socratic Questioning techniques:
- Ask open-ended questions that challenge assumptions
- Explore implications and consequences of ideas
- Examine multiple perspectives on a topic
- Questions should seek clarification, probe assumptions, or explore evidence""",
    ),
    Framework(
        id="motivational",
        name="Motivational Interviewing",
        description="""Use Motivational Interviewing techniques:
- Ask evocative questions that elicit "change talk"
- Use reflective listening in your summary
- Explore ambivalence about ideas to find authentic positions
- Questions should explore discrepancies, elicit self-motivational statements, or scale importance/confidence""",
    ),
    Framework(
        id="narrative",
        name="Narrative Therapy",
        description="""Use Narrative Therapy approaches:
- Externalize problems/topics from the person
- Identify unique outcomes or exceptions to dominant stories
- Help users re-author their narrative around a topic
- Questions should explore alternative stories, externalize problems, or identify unique outcomes""",
    ),
    Framework(
        id="solutionFocused",
        name="Solution-Focused Brief Therapy",
        description="""Use Solution-Focused Brief Therapy elements:
- Focus on solutions rather than problems
- Envision ideal outcomes with miracle questions
- Find exceptions to when problems don't exist
- Questions should be future-oriented, explore exceptions, or use scaling""",
    ),
    Framework(
        id="cognitive",
        name="Cognitive Behavioral Therapy",
        description="""Use Cognitive Behavioral techniques:
- Identify cognitive distortions in thinking
- Challenge black-and-white thinking with nuance
- Examine evidence for and against beliefs
- Questions should identify thought patterns, challenge distortions, or explore evidence""",
    ),
)

FRAMEWORKS: Mapping[str, Framework] = MappingProxyType({framework.id: framework for framework in _FRAMEWORKS})

# Normalized alias -> canonical id
_ALIASES: Mapping[str, str] = MappingProxyType(
    {
        "socraticquestioning": "socratic",
        "mi": "motivational",
        "motivationalinterviewing": "motivational",
        "narrativetherapy": "narrative",
        "solutionfocused": "solutionFocused",
        "sfbt": "solutionFocused",
        "solutionfocusedbrieftherapy": "solutionFocused",
        "cbt": "cognitive",
        "cognitivebehavioral": "cognitive",
        "cognitivebehavioural": "cognitive",
        "cognitivebehavioraltherapy": "cognitive",
    }
)


def _normalize(framework_id: str) -> str:
    """Lowercase and drop separators: 'Cognitive-Behavioral' -> 'cognitivebehavioral'."""
    return re.sub(r"[\s_\-]+", "", framework_id).lower()


_NORMALIZED_IDS: Mapping[str, str] = MappingProxyType({_normalize(fid): fid for fid in FRAMEWORKS})


def resolve_framework_id(framework_id: Optional[str]) -> str:
    """
    Resolve a user-supplied identifier to a canonical registry id.

    Resolution order: exact id, normalized id or alias, fuzzy match against
    ids and aliases, then the default id.

    Args:
        framework_id: Identifier as supplied by the caller (may be None)

    Returns:
        A key of FRAMEWORKS, or DEFAULT_FRAMEWORK_ID
    """
    if not framework_id:
        return DEFAULT_FRAMEWORK_ID
    if framework_id in FRAMEWORKS:
        return framework_id

    normalized = _normalize(framework_id)
    if not normalized:
        return DEFAULT_FRAMEWORK_ID
    if normalized in _NORMALIZED_IDS:
        return _NORMALIZED_IDS[normalized]
    if normalized in _ALIASES:
        return _ALIASES[normalized]

    best_id = DEFAULT_FRAMEWORK_ID
    best_score = 0.0
    candidates = list(_NORMALIZED_IDS.items()) + list(_ALIASES.items())
    for candidate, canonical in candidates:
        score = fuzz.ratio(normalized, candidate) / 100.0
        if score > best_score:
            best_score = score
            best_id = canonical

    if best_score >= FUZZY_THRESHOLD:
        return best_id
    return DEFAULT_FRAMEWORK_ID


def get_framework(framework_id: Optional[str]) -> Framework:
    """Return the framework for an identifier, or the default framework."""
    return FRAMEWORKS.get(resolve_framework_id(framework_id), DEFAULT_FRAMEWORK)


def describe(framework_id: Optional[str]) -> str:
    """Return the descriptive prompt fragment for a framework identifier."""
    return get_framework(framework_id).description


def list_frameworks() -> List[Framework]:
    """Return all registered frameworks in registration order."""
    return list(FRAMEWORKS.values())
