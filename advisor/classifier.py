"""Rule-based intent, bias and ambiguity classification.

Every rule set here is ordered data: the first rule that matches wins, so
the priority of a rule is its position in the table.
"""

import re

from .models import ClassificationResult, Intent

MIN_CLEAR_WORDS = 3
VAGUE_MAX_WORDS = 6

INTENT_RULES: tuple[tuple[Intent, re.Pattern[str]], ...] = (
    (
        Intent.EMERGENCY,
        re.compile(r"emergency|urgent|help|fire|evacuate|danger|911|immediate"),
    ),
    (
        Intent.STATUS,
        re.compile(
            r"status|progress|update|current|ongoing|pending|complete|finished"
            r"|timeline|when|how long|duration"
        ),
    ),
    (
        Intent.PROCESS,
        re.compile(
            r"how|process|steps|procedure|apply|application|submit|get|obtain"
            r"|rebuild|remove|opt[- ]?out|permit|inspection|documentation|form"
            r"|paperwork"
        ),
    ),
    (
        Intent.COMPARATIVE,
        re.compile(r"compare|difference|vs\.?|better|worse|best|cheaper|faster"),
    ),
    (
        Intent.LOCATION,
        re.compile(
            r"where|location|address|area|region|county|city|zip|altadena"
            r"|pasadena|los angeles"
        ),
    ),
    (
        Intent.LEGAL,
        re.compile(
            r"legal|law|regulation|compliance|requirement|policy|rule|attorney|court"
        ),
    ),
    (
        Intent.FINANCIAL,
        re.compile(
            r"money|cost|fee|price|pay|fund|grant|insurance|financial|compensation"
            r"|reimburse"
        ),
    ),
    (
        Intent.EMOTIONAL_SUPPORT,
        re.compile(
            r"support|counseling|mental|emotional|stress|trauma|wellbeing|well-being"
        ),
    ),
    (
        Intent.ELIGIBILITY,
        re.compile(r"eligible|eligibility|qualify|criteria|who can|who is"),
    ),
    (
        Intent.CONTACT,
        re.compile(r"contact|phone|email|reach|call|speak|talk|address|office|visit"),
    ),
    (
        Intent.FEEDBACK,
        re.compile(r"feedback|complaint|suggestion|report|issue|problem"),
    ),
)

BIAS_TERMS: tuple[str, ...] = (
    "should",
    "must",
    "always",
    "never",
    "obviously",
    "clearly",
    "everyone knows",
    "no one",
    "best",
    "worst",
    "only",
    "all",
    "none",
    "mandatory",
    "required",
    "illegal",
    "unethical",
    "irresponsible",
    "stupid",
    "dumb",
    "idiot",
    "fool",
    "hate",
    "love",
    "discriminate",
    "racist",
    "sexist",
    "biased",
    "prejudice",
    "unfair",
    "unjust",
    "disadvantage",
    "privilege",
    "minority",
    "majority",
    "oppressed",
    "oppressor",
)

# Distinct topic families; a message touching more than one is ambiguous.
TOPIC_CONFLICT_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"where"),
    re.compile(r"how"),
    re.compile(r"legal|law|regulation"),
    re.compile(r"money|cost|fee|financial"),
    re.compile(r"support|counseling|mental"),
    re.compile(r"eligible|eligibility"),
    re.compile(r"contact|phone|email"),
    re.compile(r"feedback|complaint"),
)

VAGUE_TERMS = re.compile(r"thing|stuff|info|information|details|something|anything")

CLARIFICATION_RULES: tuple[tuple[re.Pattern[str], tuple[str, ...]], ...] = (
    (
        re.compile(r"permit"),
        ("Debris removal permit", "Rebuilding permit", "Other permit"),
    ),
    (
        re.compile(r"support|help"),
        ("Emotional support", "Financial support", "Legal support"),
    ),
    (
        re.compile(r"status|progress|update"),
        ("Debris removal status", "Rebuilding status", "Permit status"),
    ),
    (
        re.compile(r"application|form|paperwork"),
        (
            "Debris removal application",
            "Rebuilding application",
            "Other application",
        ),
    ),
)

DEFAULT_CLARIFICATION_OPTIONS: tuple[str, ...] = (
    "Can you clarify your question?",
    "Can you provide more details?",
    "Other",
)


def word_count(message: str) -> int:
    return len(message.split())


def classify_intent(message: str) -> Intent:
    """Return the first intent whose pattern matches the message."""  # noqa: DOC201
    text = message.lower()
    for intent, pattern in INTENT_RULES:
        if pattern.search(text):
            return intent
    if word_count(message) < MIN_CLEAR_WORDS:
        return Intent.AMBIGUOUS
    return Intent.INFORMATION


def detect_bias(message: str) -> bool:
    """Check the message for charged or loaded vocabulary."""  # noqa: DOC201
    text = message.lower()
    return any(term in text for term in BIAS_TERMS)


def detect_ambiguity(message: str, intent: Intent) -> bool:
    """Decide whether the message needs clarification before retrieval.

    A message is ambiguous when it was classified as such, is too short,
    spans more than one unrelated topic family, or is a short message built
    around filler words.

    Returns:
        True when the assistant should ask for clarification.
    """
    if intent is Intent.AMBIGUOUS:
        return True
    words = word_count(message)
    if words < MIN_CLEAR_WORDS:
        return True
    text = message.lower()
    topics = sum(1 for pattern in TOPIC_CONFLICT_PATTERNS if pattern.search(text))
    if topics > 1:
        return True
    return bool(VAGUE_TERMS.search(text)) and words < VAGUE_MAX_WORDS


def classify(message: str) -> ClassificationResult:
    """Run intent, bias and ambiguity detection over one message."""  # noqa: DOC201
    intent = classify_intent(message)
    return ClassificationResult(
        intent=intent,
        bias=detect_bias(message),
        ambiguous=detect_ambiguity(message, intent),
    )


def clarification_options(message: str) -> list[str]:
    """Suggest follow-up choices for an ambiguous message."""  # noqa: DOC201
    text = message.lower()
    for pattern, options in CLARIFICATION_RULES:
        if pattern.search(text):
            return list(options)
    return list(DEFAULT_CLARIFICATION_OPTIONS)
