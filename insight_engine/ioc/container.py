from dependency_injector import containers, providers

from insight_engine.analytics import AnalyticsAugmenter
from insight_engine.config import settings
from insight_engine.connectors import (
    CredentialResolver,
    InMemoryCredentialResolver,
    PoolRegistry,
    YamlCredentialResolver,
)
from insight_engine.query import (
    CacheBackend,
    InMemoryCacheBackend,
    QueryExecutor,
    RedisCacheBackend,
    ResultCache,
)
from insight_engine.semantic import (
    InMemorySemanticModelRegistry,
    SemanticModelRegistry,
    SemanticQueryCompiler,
    YamlSemanticModelRegistry,
)
from insight_engine.services import AnalyticsService, QueryService


def create_credential_resolver(connections_file: str) -> CredentialResolver:
    if connections_file:
        return YamlCredentialResolver(connections_file)
    return InMemoryCredentialResolver()


def create_semantic_registry(models_dir: str) -> SemanticModelRegistry:
    if models_dir:
        return YamlSemanticModelRegistry(models_dir)
    return InMemorySemanticModelRegistry()


def create_cache_backend(backend: str, redis_url: str, max_entries: int) -> CacheBackend:
    if backend == "redis":
        return RedisCacheBackend.from_url(redis_url)
    return InMemoryCacheBackend(max_entries=max_entries)


class Container(containers.DeclarativeContainer):
    """Application dependency injection container."""

    wiring_config = containers.WiringConfiguration()

    pool_registry = providers.Singleton(
        PoolRegistry,
        max_size=settings.POOL_MAX_SIZE,
        idle_timeout_s=settings.POOL_IDLE_TIMEOUT_S,
        connect_timeout_s=settings.POOL_CONNECT_TIMEOUT_S,
        echo=False,
    )

    credential_resolver = providers.Singleton(
        create_credential_resolver,
        connections_file=settings.CONNECTIONS_FILE,
    )

    semantic_registry = providers.Singleton(
        create_semantic_registry,
        models_dir=settings.SEMANTIC_MODELS_DIR,
    )

    cache_backend = providers.Singleton(
        create_cache_backend,
        backend=settings.CACHE_BACKEND,
        redis_url=settings.REDIS_URL,
        max_entries=settings.CACHE_MAX_ENTRIES,
    )

    result_cache = providers.Singleton(
        ResultCache,
        backend=cache_backend,
        ttl_s=settings.CACHE_TTL_S,
        prefix=settings.CACHE_KEY_PREFIX,
        enabled=settings.CACHE_ENABLED,
    )

    query_executor = providers.Singleton(
        QueryExecutor,
        pool=pool_registry,
        default_timeout_ms=settings.QUERY_TIMEOUT_MS,
        max_rows=settings.MAX_RESULT_ROWS,
    )

    semantic_compiler = providers.Singleton(SemanticQueryCompiler, registry=semantic_registry)

    analytics_augmenter = providers.Singleton(
        AnalyticsAugmenter,
        on_error=settings.ANALYTICS_FAILURE_MODE,
    )

    analytics_service = providers.Singleton(AnalyticsService)

    query_service = providers.Singleton(
        QueryService,
        credential_resolver=credential_resolver,
        executor=query_executor,
        cache=result_cache,
        compiler=semantic_compiler,
        augmenter=analytics_augmenter,
        analytics_service=analytics_service,
        default_page_size=settings.DEFAULT_PAGE_SIZE,
        max_page_size=settings.MAX_PAGE_SIZE,
    )
