# notewright/core/services.py

from dataclasses import dataclass
from typing import Optional

from notewright.clients.offline import OfflineGenerator
from notewright.clients.openai_client import OpenAIGenerator
from notewright.config.settings import Settings, load_settings
from notewright.core.articles import ArticleEditor
from notewright.core.conductor import InterviewConductor
from notewright.core.engine import GenerationEngine, RetryPolicy
from notewright.core.generation import TextGenerator
from notewright.core.ledger import EditHistoryLedger
from notewright.memory import db
from notewright.prompts.registry import DEFAULT_REGISTRY, PromptRegistry, registry_from_pins
from notewright.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Services:
    settings: Settings
    registry: PromptRegistry
    generator: TextGenerator
    engine: GenerationEngine
    ledger: EditHistoryLedger
    conductor: InterviewConductor
    editor: ArticleEditor


def make_generator(settings: Settings) -> TextGenerator:
    if settings.offline:
        logger.warning("OPENAI_API_KEY not set; using the offline generator.")
        return OfflineGenerator()
    return OpenAIGenerator(settings)


def build_services(
    settings: Optional[Settings] = None,
    generator: Optional[TextGenerator] = None,
    retry: Optional[RetryPolicy] = None,
    registry: Optional[PromptRegistry] = None,
) -> Services:
    """
    Wire the pipeline from settings: store, pinned prompt registry,
    generator and retry policy. Anything passed in explicitly wins.
    """
    settings = settings or load_settings()
    db.configure(settings.db_path)

    if registry is None:
        registry = registry_from_pins(
            DEFAULT_REGISTRY,
            interview_version=settings.interview_prompt_version,
            writing_version=settings.writing_prompt_version,
        )
    generator = generator or make_generator(settings)
    retry = retry or RetryPolicy(
        max_attempts=settings.generation_max_attempts,
        base_delay=settings.retry_base_seconds,
    )

    engine = GenerationEngine(generator, registry, retry)
    ledger = EditHistoryLedger()
    logger.info(
        "Services ready: generator=%s interview_prompt=%s writing_prompt=%s db=%s",
        getattr(generator, "name", type(generator).__name__),
        registry.current("interview").id,
        registry.current("writing").id,
        settings.db_path,
    )
    return Services(
        settings=settings,
        registry=registry,
        generator=generator,
        engine=engine,
        ledger=ledger,
        conductor=InterviewConductor(engine, registry, ledger=ledger),
        editor=ArticleEditor(engine, ledger=ledger),
    )
