# --------------------------------
# DI container
# --------------------------------
from functools import lru_cache

from schoolflow.config import Settings, settings
from schoolflow.db.connection import build_engine, build_session_factory
from schoolflow.domain.aggregation import (
    AggregationService,
    HttpRevenueSource,
    RevenueSource,
    StaticRevenueSource,
)
from schoolflow.domain.notifications import (
    HttpNotificationSink,
    InboxNotificationSink,
    NotificationEmitter,
    NotificationSink,
    NullNotificationSink,
)
from schoolflow.domain.workflow import (
    EntityStore,
    InMemoryEntityStore,
    SqlEntityStore,
    WorkflowEngine,
)


class Container:
    """Wires the store, notification sink, engine and aggregation together.

    Every collaborator can be injected; anything left out is built from
    ``settings``.
    """

    def __init__(
        self,
        config: Settings | None = None,
        *,
        store: EntityStore | None = None,
        sink: NotificationSink | None = None,
        revenue_source: RevenueSource | None = None,
    ):
        self._config = config or settings
        self._store = store or self._build_store()
        self._sink = sink or self._build_sink()
        self._revenue_source = revenue_source or self._build_revenue_source()
        self._notifier = NotificationEmitter(self._sink)
        self._engine = WorkflowEngine(store=self._store, notifier=self._notifier)
        self._aggregation = AggregationService(self._store)

    def _build_store(self) -> EntityStore:
        if self._config.store_backend == "sql":
            engine = build_engine(self._config.database_url)
            return SqlEntityStore(build_session_factory(engine))
        return InMemoryEntityStore()

    def _build_sink(self) -> NotificationSink:
        if self._config.notification_sink == "http" and self._config.notification_webhook_url:
            return HttpNotificationSink(
                self._config.notification_webhook_url,
                timeout_s=self._config.notification_timeout_s,
            )
        if self._config.notification_sink == "none":
            return NullNotificationSink()
        return InboxNotificationSink()

    def _build_revenue_source(self) -> RevenueSource:
        if self._config.payments_base_url:
            return HttpRevenueSource(
                self._config.payments_base_url,
                timeout_s=self._config.revenue_timeout_s,
            )
        return StaticRevenueSource(self._config.static_revenue)

    @property
    def store(self) -> EntityStore:
        return self._store

    @property
    def sink(self) -> NotificationSink:
        return self._sink

    @property
    def notifier(self) -> NotificationEmitter:
        return self._notifier

    @property
    def engine(self) -> WorkflowEngine:
        return self._engine

    @property
    def aggregation(self) -> AggregationService:
        return self._aggregation

    @property
    def revenue_source(self) -> RevenueSource:
        return self._revenue_source


@lru_cache
def get_container():
    return Container()
