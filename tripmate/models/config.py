"""
Configuration models for TripMate.

Defines dataclasses for the unified YAML configuration file.
"""

from dataclasses import dataclass, field
from typing import Literal

DEFAULT_SYSTEM_PROMPT = (
    "You are TripMate, a smart travel companion that provides users with travel "
    "suggestions, local event updates, and real-time weather insights to help them "
    "plan better trips. Use the weather tool for current conditions and forecasts, "
    "create_trip_card to summarise a destination, and create_packing_list for "
    "packing advice. If a tool returns an error, say you could not retrieve that "
    "data instead of guessing."
)

DEFAULT_TOPIC_KEYWORDS = (
    "travel",
    "trip",
    "destination",
    "hotel",
    "hostel",
    "packing",
    "pack",
    "luggage",
    "weather",
    "temperature",
    "forecast",
    "flight",
    "airport",
    "vacation",
    "holiday",
    "itinerary",
    "visit",
    "tour",
    "beach",
    "city",
    "country",
    "visa",
    "passport",
    "sightseeing",
    "attraction",
    "backpack",
)

DEFAULT_REDIRECT_MESSAGES = (
    "I'm TripMate, your travel companion. I can help with destinations, "
    "weather, packing and trip planning. Where are you heading next?",
    "That's outside what I can help with, but I'd love to help you plan a trip. "
    "Ask me about a destination, its weather, or what to pack.",
    "I only cover travel topics. Try asking about the weather in a city or a "
    "packing list for your next trip!",
)


@dataclass
class ModelConfig:
    """Configuration for the chat model behind the AI gateway."""
    base_url: str = "https://ai-gateway.vercel.sh/v1"
    api_key: str = ""
    name: str = "openai/gpt-4o"
    temperature: float = 0.7
    timeout: float = 60.0

    @property
    def is_configured(self) -> bool:
        """A model can only be called with credentials."""
        return bool(self.api_key)


@dataclass
class OrchestratorConfig:
    """Configuration for the step orchestrator."""
    max_steps: int = 5
    forced_tool: str = "weather"
    trigger_keywords: tuple[str, ...] = ("weather", "temperature")
    tool_choice_after_first_step: Literal["auto", "none"] = "auto"
    system_prompt: str = DEFAULT_SYSTEM_PROMPT


@dataclass
class HistoryConfig:
    """Configuration for the conversation history store."""
    capacity: int = 50
    compact_threshold: int = 100


@dataclass
class GuardrailConfig:
    """Configuration for the topic guardrail."""
    enabled: bool = True
    keywords: tuple[str, ...] = DEFAULT_TOPIC_KEYWORDS
    redirect_messages: tuple[str, ...] = DEFAULT_REDIRECT_MESSAGES


@dataclass
class WeatherConfig:
    """Configuration for the OpenWeather-backed weather tool."""
    api_key: str = ""
    base_url: str = "https://api.openweathermap.org/data/2.5"
    timeout: float = 10.0
    max_forecast_days: int = 7


@dataclass
class ToolsConfig:
    """Configuration for tool endpoints."""
    weather: WeatherConfig = field(default_factory=WeatherConfig)


@dataclass
class ServerConfig:
    """Configuration for the FastAPI server."""
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 1
    reload: bool = False


@dataclass
class LoggingConfig:
    """Configuration for logging."""
    level: str = "INFO"


@dataclass
class LangfuseConfig:
    """Configuration for Langfuse observability.

    Tracing auto-enables when both public_key and secret_key are provided.
    """
    public_key: str = ""
    secret_key: str = ""
    host: str = ""
    debug: bool = False

    @property
    def is_configured(self) -> bool:
        """Check if Langfuse is configured (both keys present)."""
        return bool(self.public_key and self.secret_key)


@dataclass
class AppConfig:
    """
    Unified application configuration container.

    Holds all configuration sections loaded from config/config.yaml.
    """
    version: str = "1.0"
    model: ModelConfig = field(default_factory=ModelConfig)
    orchestrator: OrchestratorConfig = field(default_factory=OrchestratorConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    guardrail: GuardrailConfig = field(default_factory=GuardrailConfig)
    tools: ToolsConfig = field(default_factory=ToolsConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    langfuse: LangfuseConfig = field(default_factory=LangfuseConfig)

    @property
    def log_level(self) -> str:
        """Shortcut for logging.level."""
        return self.logging.level
