"""Schema management for the Checkout domain's relational providers."""

from protean.domain import Domain
from sqlalchemy import create_engine

_RELATIONAL_PROVIDERS = ("sqlite", "postgresql")


def _relational_providers(domain: Domain):
    for name, provider in domain.providers.items():
        if provider.conn_info["provider"] in _RELATIONAL_PROVIDERS:
            yield name, provider


def setup_db(domain: Domain) -> list[str]:
    """Create tables for every relational provider. Returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for name, provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])

            # Touching `_dao` registers the aggregate and entity models with
            # the provider's SQLAlchemy metadata before create_all runs.
            for _, record in domain.registry.aggregates.items():
                if record.cls.meta_.provider == name:
                    domain.repository_for(record.cls)._dao  # noqa: B018
            for _, record in domain.registry.entities.items():
                if record.cls.meta_.provider == name:
                    domain.repository_for(record.cls)._dao  # noqa: B018

            provider._metadata.create_all(engine)
            touched.append(name)
    return touched


def drop_db(domain: Domain) -> list[str]:
    """Drop tables for every relational provider. Returns the provider names touched."""
    touched = []
    with domain.domain_context():
        for name, provider in _relational_providers(domain):
            engine = create_engine(provider.conn_info["database_uri"])
            provider._metadata.drop_all(engine)
            touched.append(name)
    return touched
