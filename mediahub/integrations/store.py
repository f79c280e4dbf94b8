"""
Configuration store for per-user service configurations.

Credentials are encrypted with the credential vault on write and decrypted
on read. When a stored value fails to decrypt, the store treats it as legacy
plaintext written before encryption was introduced; that decision belongs
here, not in the vault.

Interface (what service clients rely on):
- get(user_id, service_name) -> ServiceConfiguration | None
- upsert(user_id, service_name, base_url, api_key, username=None, password=None, is_enabled=True)
- delete(user_id, service_name) -> ServiceConfiguration | None
- list_for_user(user_id) -> {service_name: ServiceConfiguration}
"""
from typing import Dict, Optional

from sqlalchemy.engine import Engine
from sqlmodel import select

from mediahub.core.database import session_scope
from mediahub.core.encryption import decrypt_secret, encrypt_secret
from mediahub.core.exceptions import DecryptionFailedError
from mediahub.core.logging_config import LogCategory, log_info, log_warning
from mediahub.core.time_utils import utc_now
from mediahub.integrations.schemas import ServiceConfiguration
from mediahub.models.service_config import ServiceConfig


class ServiceConfigStore:
    """
    SQLModel-backed store of ServiceConfig rows.

    Args:
        engine: SQLAlchemy engine (see core/database.py)
    """

    def __init__(self, engine: Engine):
        self._engine = engine

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, user_id: str, service_name: str) -> Optional[ServiceConfiguration]:
        with session_scope(self._engine) as session:
            row = session.exec(
                select(ServiceConfig)
                .where(ServiceConfig.user_id == user_id)
                .where(ServiceConfig.service_name == service_name)
            ).first()
            if row is None:
                return None
            return self._to_configuration(row)

    def list_for_user(self, user_id: str) -> Dict[str, ServiceConfiguration]:
        """Return every configuration of a user keyed by service name."""
        with session_scope(self._engine) as session:
            rows = session.exec(
                select(ServiceConfig).where(ServiceConfig.user_id == user_id)
            ).all()
            return {row.service_name: self._to_configuration(row) for row in rows}

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(
        self,
        user_id: str,
        service_name: str,
        base_url: str,
        api_key: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
        is_enabled: bool = True,
    ) -> ServiceConfiguration:
        """Create or replace the configuration for (user_id, service_name)."""
        normalized_url = base_url.strip().rstrip('/')
        api_key_encrypted = encrypt_secret(api_key or "")
        password_encrypted = encrypt_secret(password) if password is not None else None

        with session_scope(self._engine) as session:
            row = session.exec(
                select(ServiceConfig)
                .where(ServiceConfig.user_id == user_id)
                .where(ServiceConfig.service_name == service_name)
            ).first()

            if row:
                row.base_url = normalized_url
                row.api_key_encrypted = api_key_encrypted
                row.username = username
                row.password_encrypted = password_encrypted
                row.is_enabled = is_enabled
                row.updated_at = utc_now()
                action = "Updated"
            else:
                row = ServiceConfig(
                    user_id=user_id,
                    service_name=service_name,
                    base_url=normalized_url,
                    api_key_encrypted=api_key_encrypted,
                    username=username,
                    password_encrypted=password_encrypted,
                    is_enabled=is_enabled,
                )
                action = "Created"

            session.add(row)
            session.commit()
            session.refresh(row)

            log_info(
                f"{action} {service_name} configuration for user {user_id}",
                category=LogCategory.DB,
                enabled=is_enabled,
            )
            return self._to_configuration(row)

    def delete(self, user_id: str, service_name: str) -> Optional[ServiceConfiguration]:
        """Delete a configuration, returning what was removed (or None)."""
        with session_scope(self._engine) as session:
            row = session.exec(
                select(ServiceConfig)
                .where(ServiceConfig.user_id == user_id)
                .where(ServiceConfig.service_name == service_name)
            ).first()
            if row is None:
                return None

            removed = self._to_configuration(row)
            session.delete(row)
            session.commit()

            log_info(f"Deleted {service_name} configuration for user {user_id}", category=LogCategory.DB)
            return removed

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _to_configuration(self, row: ServiceConfig) -> ServiceConfiguration:
        return ServiceConfiguration(
            user_id=row.user_id,
            service_name=row.service_name,
            base_url=row.base_url,
            api_key=self._reveal(row.api_key_encrypted, row, "api_key"),
            username=row.username,
            password=(
                self._reveal(row.password_encrypted, row, "password")
                if row.password_encrypted is not None else None
            ),
            is_enabled=row.is_enabled,
        )

    @staticmethod
    def _reveal(stored: str, row: ServiceConfig, field: str) -> str:
        """Decrypt a stored credential, falling back to legacy plaintext."""
        try:
            return decrypt_secret(stored)
        except DecryptionFailedError:
            log_warning(
                "Stored credential is not a vault blob; treating it as legacy plaintext",
                category=LogCategory.SECURITY,
                service_name=row.service_name,
                user_id=row.user_id,
                field_name=field,
            )
            return stored


_config_store: Optional[ServiceConfigStore] = None


def get_config_store() -> ServiceConfigStore:
    """
    Get the process-wide configuration store.

    Built lazily from settings.database_url; tables are created on first use.
    """
    global _config_store
    if _config_store is None:
        from mediahub.core.database import create_db_engine, init_db

        engine = create_db_engine()
        init_db(engine)
        _config_store = ServiceConfigStore(engine)
    return _config_store


def set_config_store(store: Optional[ServiceConfigStore]) -> None:
    """Replace the process-wide configuration store (None resets it)."""
    global _config_store
    _config_store = store
