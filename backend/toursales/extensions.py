# Overview: Flask extension instances for database, migrations and the remote clients.

from dataclasses import dataclass

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

db = SQLAlchemy()
migrate = Migrate()


@dataclass
class TourProvider:
    """Process-wide provider clients, shared by every request."""
    token_cache: "ProviderTokenCache"
    gateway: "ProviderGateway"


def init_remote_clients(app, *, provider_transport=None, identity_transport=None) -> None:
    """
    Build the token cache, gateway and identity client once per app.

    Stored under app.extensions["tour_provider"] and
    app.extensions["identity_service"]. Transports are injectable for tests.
    """
    from .services.identity_service import IdentityService
    from .services.provider_gateway import ProviderGateway
    from .services.provider_token_cache import ProviderTokenCache

    config = app.config
    timeout = config.get("PROVIDER_TIMEOUT_SECONDS")

    token_cache = ProviderTokenCache(
        config["PROVIDER_TOKEN_URL"],
        config.get("PROVIDER_CLIENT_ID"),
        config.get("PROVIDER_CLIENT_SECRET"),
        config["PROVIDER_SCOPE"],
        margin_seconds=int(config.get("PROVIDER_TOKEN_MARGIN_SECONDS", 300)),
        timeout=timeout,
        transport=provider_transport,
    )
    gateway = ProviderGateway(
        config["PROVIDER_API_URL"],
        token_cache,
        currency=config["PROVIDER_CURRENCY"],
        timeout=timeout,
        transport=provider_transport,
    )
    app.extensions["tour_provider"] = TourProvider(token_cache=token_cache, gateway=gateway)
    app.extensions["identity_service"] = IdentityService(
        config["IDENTITY_BASE_URL"],
        config.get("IDENTITY_SYSTEM_USERNAME"),
        config.get("IDENTITY_SYSTEM_PASSWORD"),
        timeout=timeout,
        transport=identity_transport,
    )
