"""Schema management for the pharmacy's SQL-backed providers.

Memory providers need no schema and are skipped, so these helpers are no-ops
under the test configuration.
"""

from protean.domain import Domain
from sqlalchemy import create_engine

SQL_PROVIDERS = ("sqlite", "postgresql")


def _sql_providers(domain: Domain):
    for _, provider in domain.providers.items():
        if provider.conn_info["provider"] in SQL_PROVIDERS:
            yield provider


def _register_models(domain: Domain, provider) -> int:
    """Touch every repository's DAO so its table is registered in the provider metadata."""
    registry = domain.registry
    records = [
        *registry.aggregates.values(),
        *registry.entities.values(),
        *registry.projections.values(),
    ]
    count = 0
    for record in records:
        if record.cls.meta_.provider == provider.name:
            domain.repository_for(record.cls)._dao  # noqa: B018
            count += 1
    return count


def setup_db(domain: Domain) -> list[str]:
    """Create tables for carts, orders, products and the tracking view. Returns the providers touched."""
    touched = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.create_all(engine)
            touched.append(provider.name)
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop every table the pharmacy created. Returns the providers touched."""
    touched = []
    with domain.domain_context():
        for provider in _sql_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            _register_models(domain, provider)
            provider._metadata.drop_all(engine)
            touched.append(provider.name)
    return touched
