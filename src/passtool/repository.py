"""Profile and secret repositories on top of the record stores.

Profiles never hold a secret: their password is re-derived from the user's
passphrase on demand. Secrets are encrypted on the way in and decrypted on the
way out, so the store only ever sees tokens.
"""

import logging
from dataclasses import replace
from typing import List, Optional

from .crypto import SecretCipher
from .derivation import derive_for_profile
from .models import CredentialProfile, Secret, StoredSecret, now_millis
from .store import MemoryRecordStore

logger = logging.getLogger(__name__)


class ProfileRepository:
    def __init__(self, store: MemoryRecordStore[CredentialProfile]):
        self.store = store

    def list_profiles(self) -> List[CredentialProfile]:
        return self.store.list()

    def get_profile(self, profile_id: str) -> Optional[CredentialProfile]:
        return self.store.get(profile_id)

    def search_profiles(self, query: str) -> List[CredentialProfile]:
        return self.store.search(query)

    def profiles_by_category(self, category: str) -> List[CredentialProfile]:
        return self.store.by_category(category)

    def categories(self) -> List[str]:
        return self.store.categories()

    def add_profile(self, profile: CredentialProfile) -> str:
        """Validate and insert a profile, returning its id.

        Raises:
            InvalidProfile: Blank title or length outside 1..128.
        """
        profile_id = self.store.insert(profile.validate())
        logger.info("Added profile %s", profile_id)
        return profile_id

    def update_profile(self, profile: CredentialProfile) -> bool:
        profile.validate()
        return self.store.update(replace(profile, updated_at=now_millis()))

    def delete_profile(self, profile_id: str) -> bool:
        deleted = self.store.delete(profile_id)
        if deleted:
            logger.info("Deleted profile %s", profile_id)
        return deleted

    def generate_password(self, profile_id: str, passphrase: str) -> Optional[str]:
        """Derive the password for a stored profile; None if it does not exist."""
        profile = self.store.get(profile_id)
        if profile is None:
            return None
        return derive_for_profile(profile, passphrase)


class SecretRepository:
    def __init__(self, store: MemoryRecordStore[StoredSecret], cipher: SecretCipher):
        self.store = store
        self.cipher = cipher

    def _to_secret(self, stored: StoredSecret) -> Secret:
        return Secret(
            id=stored.id,
            title=stored.title,
            website=stored.website,
            username=stored.username,
            password=self.cipher.decrypt(stored.encrypted_password),
            notes=stored.notes,
            category=stored.category,
            created_at=stored.created_at,
            updated_at=stored.updated_at,
        )

    def _to_stored(self, secret: Secret) -> StoredSecret:
        return StoredSecret(
            id=secret.id,
            title=secret.title,
            website=secret.website,
            username=secret.username,
            encrypted_password=self.cipher.encrypt(secret.password),
            notes=secret.notes,
            category=secret.category,
            created_at=secret.created_at,
            updated_at=secret.updated_at,
        )

    def list_secrets(self) -> List[StoredSecret]:
        """Stored records without decrypting anything."""
        return self.store.list()

    def search_secrets(self, query: str) -> List[StoredSecret]:
        return self.store.search(query)

    def get_secret(self, secret_id: str) -> Optional[Secret]:
        """Decrypt a secret; None if absent.

        Raises:
            DecryptionError: If the stored token can no longer be decrypted.
        """
        stored = self.store.get(secret_id)
        if stored is None:
            return None
        return self._to_secret(stored)

    def add_secret(self, secret: Secret) -> str:
        if not secret.title or not secret.title.strip():
            raise ValueError("Secret title cannot be blank.")
        secret_id = self.store.insert(self._to_stored(secret))
        logger.info("Added secret %s", secret_id)
        return secret_id

    def update_secret(self, secret: Secret) -> bool:
        return self.store.update(
            self._to_stored(replace(secret, updated_at=now_millis()))
        )

    def delete_secret(self, secret_id: str) -> bool:
        return self.store.delete(secret_id)

    def wipe(self) -> int:
        """Delete every secret and the key that encrypted them."""
        removed = self.store.clear()
        self.cipher.destroy_key()
        logger.warning("Wiped %d secrets", removed)
        return removed
