import logging
import time
from typing import Optional, Tuple

from quart import Quart, request
from quart_cors import cors
from quart_schema import Info, QuartSchema, hide

from .common.config import Settings, settings as default_settings
from .common.database import EntityStore
from .common.kafka_client import EventAnnouncer
from .common.metrics import REQUEST_COUNT, REQUEST_LATENCY, start_metrics_server
from .common.secrets_provider import SecretsError, build_secrets_provider, store_url_from_secrets
from .sales.controller import HANDLER_KEY, bp as sales_bp
from .sales.service import SaleCreationHandler

log = logging.getLogger(__name__)

LIVENESS_MESSAGE = "Create Sale Service Running"


async def build_dependencies(app_settings: Settings, secrets_provider=None) -> Tuple[EntityStore, EventAnnouncer]:
    """
    Fetch the secrets, open the store and connect the announcer.

    Raises SecretsError when the configuration provider fails; nothing else is
    built in that case. A broker that cannot be reached only leaves the
    announcer unusable.
    """
    provider = secrets_provider or build_secrets_provider(app_settings)
    try:
        secrets = await provider.fetch()
    except SecretsError as e:
        log.error("Error starting service, configuration provider failed | err=%s", e)
        raise

    store = EntityStore.from_url(store_url_from_secrets(secrets, app_settings.DB_URL))
    await store.init_schema()
    log.info("Store ready.")

    announcer = EventAnnouncer(
        secrets.get("KAFKA_BOOTSTRAP_SERVERS") or app_settings.KAFKA_BOOTSTRAP_SERVERS,
        app_settings.SALE_EVENTS_TOPIC,
        connect_attempts=app_settings.KAFKA_CONNECT_ATTEMPTS,
        backoff=app_settings.KAFKA_CONNECT_BACKOFF,
    )
    await announcer.start()
    if not announcer.available:
        log.warning("Starting without an event announcer, sales reaching the publish step will answer 500 | topic=%s", announcer.topic)
    return store, announcer


def create_app(
    app_settings: Optional[Settings] = None,
    store=None,
    announcer=None,
    secrets_provider=None,
) -> Quart:
    """
    Build the HTTP surface.

    store and announcer are normally created at startup from the
    configuration provider; passing them in skips that step.
    """
    if (store is None) != (announcer is None):
        raise ValueError("store and announcer must be injected together")
    app_settings = app_settings or default_settings

    app = Quart(__name__)
    app = cors(app, allow_origin="*")
    QuartSchema(
        app,
        info=Info(title="Create Sale Service API", version="1.0.0", description="API for creating sales"),
        openapi_path="/openapi.json",
        swagger_ui_path="/api-docs",
        redoc_ui_path=None,
        scalar_ui_path=None,
    )

    app.register_blueprint(sales_bp)

    @app.before_request
    async def before_request():
        request._start_time = time.time()

    @app.after_request
    async def after_request(response):
        start = getattr(request, "_start_time", None)
        if start is not None:
            endpoint = request.url_rule.rule if request.url_rule is not None else "unmatched"
            REQUEST_LATENCY.labels(endpoint=endpoint).observe(time.time() - start)
            REQUEST_COUNT.labels(
                method=request.method,
                endpoint=endpoint,
                status=str(response.status_code),
            ).inc()
        return response

    @app.get("/")
    @hide
    async def index():
        # Liveness only; says nothing about the store or the broker
        return app.response_class(LIVENESS_MESSAGE, mimetype="text/plain")

    @app.before_serving
    async def startup():
        nonlocal store, announcer
        logging.basicConfig(level=app_settings.LOG_LEVEL)
        if store is None:
            store, announcer = await build_dependencies(app_settings, secrets_provider)
        app.extensions[HANDLER_KEY] = SaleCreationHandler(store, announcer)
        start_metrics_server(app_settings.METRICS_PORT)
        log.info("Create Sale service listening | port=%s", app_settings.APP_PORT)

    @app.after_serving
    async def shutdown():
        if announcer is not None:
            await announcer.close()
        if store is not None:
            await store.close()
        log.info("Shutdown complete.")

    return app
