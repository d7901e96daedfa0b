"""
Model Registry.

Binds each response mode to its primary/backup backend pair, generation
parameters, system prompt and normalization rules. Built once from settings
at startup and read-only afterward.
"""

from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any

from instantsolve.classifier import contains_mathematical
from instantsolve.config import Settings
from instantsolve.modes import Mode, parse_mode
from instantsolve.normalizers import FORMAT_RULES
from instantsolve.normalizers.markup import Rule


# Remote model ids, keyed by the name used for their API key setting
MODEL_IDS = {
    "phi_3_mini": "microsoft/phi-3-mini-128k-instruct:free",
    "phi_3_medium": "microsoft/phi-3-medium-128k-instruct:free",
    "mythomax": "gryphe/mythomax-l2-13b:free",
    "gemini": "google/gemini-2.0-pro-exp-02-05:free",
    "zephyr": "huggingfaceh4/zephyr-7b-beta:free",
    "llama_3": "meta-llama/llama-3.1-8b-instruct:free",
    "llama_vision": "meta-llama/llama-3.2-11b-vision-instruct:free",
}


@dataclass(frozen=True)
class ModelDescriptor:
    """A remote backend and the key used to call it."""

    name: str
    model_id: str
    api_key: str = field(default="", repr=False)


@dataclass(frozen=True)
class GenerationParams:
    """Sampling parameters sent with every request for a mode."""

    temperature: float
    max_tokens: int
    top_p: float
    frequency_penalty: float | None = None
    presence_penalty: float | None = None

    def to_payload(self) -> dict[str, Any]:
        """Request body fields; unset penalties are omitted."""
        payload: dict[str, Any] = {
            "temperature": self.temperature,
            "max_tokens": self.max_tokens,
            "top_p": self.top_p,
        }
        if self.frequency_penalty is not None:
            payload["frequency_penalty"] = self.frequency_penalty
        if self.presence_penalty is not None:
            payload["presence_penalty"] = self.presence_penalty
        return payload


def plain_query(query: str) -> str:
    return query


def math_query(query: str) -> str:
    """Wrap the query the way the math backends expect it."""
    if contains_mathematical(query):
        return f"Solve this mathematical problem step by step: {query}"
    return f"Analyze this logical problem step by step: {query}"


@dataclass(frozen=True)
class ModeConfig:
    """Everything an adapter needs to serve one mode."""

    mode: Mode
    primary: ModelDescriptor
    backup: ModelDescriptor
    params: GenerationParams
    system_prompt: str
    user_template: Callable[[str], str] = plain_query
    format_rules: tuple[Rule, ...] = ()

    def render_user_text(self, query: str) -> str:
        return self.user_template(query)


# =============================================================================
# System prompts
# =============================================================================

QUICK_ANSWER_PROMPT = """You are a quick answer expert. Your task is to:
1. Provide immediate, accurate responses
2. Keep answers concise and to the point (max 2-3 sentences when possible)
3. Focus on the most relevant information
4. Use simple, clear language
5. Include key facts or numbers when applicable
6. Avoid unnecessary details or tangents
7. Format responses for easy reading
8. If uncertain, clearly state limitations

For factual queries, provide verified information. For opinions, offer balanced perspectives. \
For recommendations, suggest practical options."""

LOGICAL_MATH_PROMPT = """You are a mathematical and logical reasoning expert. Your task is to:
1. Analyze and solve any type of mathematical problems, including:
   - Word problems and story-based math questions
   - Numerical calculations and equations
   - Algebraic expressions and formulas
   - Geometry and spatial problems
   - Logic puzzles and mathematical reasoning
2. Show all work clearly with proper formatting
3. Use mathematical notation when appropriate
4. Explain your reasoning at each step
5. Verify the final answer and state it on a line starting with "Answer:"
6. Keep responses clear and concise

For word problems:
- First identify the key mathematical concepts
- Convert the words into mathematical expressions
- Solve step by step
- Explain the solution in context of the original problem

If the query is not mathematical, provide logical reasoning and structured analysis."""

DETAILED_PROMPT = (
    "You are a detailed explanation expert focused on providing accurate, factual information. "
    "Never fabricate or make up information. If you are not certain about something, acknowledge "
    "the uncertainty or lack of information. For topics like historical figures, mythology, or real "
    "people, only provide verified, accurate information from reliable sources. If asked about "
    "something that does not exist or you are not sure about, clearly state that rather than making "
    "up details. Organize longer answers under markdown section headers."
)

IMAGE_PROMPT = """You are an advanced visual analysis expert. Your task is to:

For Image Analysis:
1. Provide detailed visual analysis of images
2. Identify and describe key elements:
   • Main subjects and characteristics
   • Colors, patterns, and composition
   • Text or symbols present
   • Spatial relationships
3. Detect and analyze:
   • Emotions and expressions
   • Actions and interactions
   • Style and artistic elements
   • Technical aspects

For Visual Questions (without images):
1. Provide visual descriptions and explanations
2. Describe visual concepts and relationships
3. Explain visual principles and techniques
4. Answer questions about visual elements
5. Provide examples and analogies
6. Explain design and aesthetic concepts

General Guidelines:
• Use clear, descriptive language
• Maintain professional tone
• Provide systematic analysis
• Include relevant examples
• Consider multiple perspectives"""

CREATIVE_PROMPT = """You are an expert creative content generator. Your task is to:
1. Generate imaginative and original content:
   • Stories and narratives
   • Poetry and prose
   • Creative descriptions
   • Unique concepts
   • Innovative solutions
2. Incorporate rich elements:
   • Vivid imagery and sensory details
   • Engaging characters and dialogue
   • Emotional depth and resonance
   • Varied vocabulary and phrasing
   • Metaphors and symbolism
3. Maintain quality standards:
   • Coherent structure and flow
   • Proper grammar and style
   • Consistent tone and voice
   • Appropriate length and pacing
4. Adapt to specific requests:
   • Follow given prompts or themes
   • Match requested formats
   • Incorporate user elements
   • Respect genre conventions

Format content with:
• Clear structure
• Visual appeal
• Appropriate spacing
• Stylistic consistency"""


# mode -> (primary, backup, params, prompt, user template)
MODE_TABLE = {
    Mode.QUICK_ANSWER: (
        "phi_3_mini", "zephyr",
        GenerationParams(temperature=0.7, max_tokens=250, top_p=0.9, frequency_penalty=0.0),
        QUICK_ANSWER_PROMPT, plain_query,
    ),
    Mode.LOGICAL_MATH: (
        "phi_3_medium", "gemini",
        GenerationParams(temperature=0.3, max_tokens=500, top_p=0.95, frequency_penalty=0.1, presence_penalty=0.1),
        LOGICAL_MATH_PROMPT, math_query,
    ),
    Mode.DETAILED: (
        "llama_3", "phi_3_medium",
        GenerationParams(temperature=0.7, max_tokens=2000, top_p=0.95, frequency_penalty=0.1, presence_penalty=0.1),
        DETAILED_PROMPT, plain_query,
    ),
    Mode.IMAGE: (
        "llama_vision", "gemini",
        GenerationParams(temperature=0.7, max_tokens=500, top_p=0.9, frequency_penalty=0.0),
        IMAGE_PROMPT, plain_query,
    ),
    Mode.CREATIVE: (
        "mythomax", "llama_3",
        GenerationParams(temperature=0.9, max_tokens=750, top_p=0.95, frequency_penalty=0.7),
        CREATIVE_PROMPT, plain_query,
    ),
}


class ModelRegistry:
    """Read-only lookup of ModeConfig by Mode."""

    def __init__(self, configs: Mapping[Mode, ModeConfig]):
        missing = [mode.value for mode in Mode if mode not in configs]
        if missing:
            raise ValueError(f"Registry is missing modes: {', '.join(missing)}")
        self._configs = dict(configs)

    def config_for(self, mode: "Mode | str") -> ModeConfig:
        """Config for a mode. Raises ValueError for names outside the catalog."""
        return self._configs[parse_mode(mode)]

    def __iter__(self) -> Iterator[ModeConfig]:
        return (self._configs[mode] for mode in Mode)

    def __len__(self) -> int:
        return len(self._configs)


def build_descriptors(settings: Settings) -> dict[str, ModelDescriptor]:
    """One descriptor per remote model, paired with its configured key."""
    keys = settings.keys
    return {
        name: ModelDescriptor(name=name, model_id=model_id, api_key=getattr(keys, f"{name}_key"))
        for name, model_id in MODEL_IDS.items()
    }


def build_registry(settings: Settings) -> ModelRegistry:
    """Build the registry from settings. Called once at startup."""
    descriptors = build_descriptors(settings)
    configs = {}
    for mode, (primary, backup, params, prompt, template) in MODE_TABLE.items():
        configs[mode] = ModeConfig(
            mode=mode,
            primary=descriptors[primary],
            backup=descriptors[backup],
            params=params,
            system_prompt=prompt,
            user_template=template,
            format_rules=FORMAT_RULES[mode],
        )
    return ModelRegistry(configs)
