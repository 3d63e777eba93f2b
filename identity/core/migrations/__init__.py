from identity.core.migrations.runner import apply_migrations

__all__ = ["apply_migrations"]
