"""Account service

Authentication is mocked: passwords are accepted but never verified, and
unknown emails may be registered on first login.
"""

import logging
import random
from typing import List, Optional

from legacy.config import settings
from legacy.errors import EmailAlreadyRegistered, InvalidInput, UserNotFound
from legacy.models.user import User, UserUpdate
from legacy.services.database import Database, Q, db
from legacy.services.rbac_service import RBACService, rbac_service
from legacy.services.vault_service import VaultService, vault_service

logger = logging.getLogger(__name__)


class AccountService:
    def __init__(self, database: Database, rbac: RBACService, vaults: VaultService):
        self.db = database
        self.rbac = rbac
        self.vaults = vaults

    def get_user(self, user_id: str) -> User:
        doc = self.db.users.get(Q.id == user_id)
        if not doc:
            raise UserNotFound("User not found")
        return self.db.load(User, doc, "users")

    def find_user_by_email(self, email: str) -> Optional[User]:
        doc = self.db.users.get(Q.email == email.strip().lower())
        return self.db.load(User, doc, "users") if doc else None

    def list_users(self) -> List[dict]:
        """Every user together with their role ids"""
        users = self.db.load_all(User, self.db.users.all(), "users")
        return [
            {**user.model_dump(), "role_ids": self.rbac.get_user_role_ids(user.id)}
            for user in sorted(users, key=lambda u: u.created_at)
        ]

    def _create_user(self, name: str, email: str, provider: str = None) -> User:
        now = self.db.timestamp()
        user = User(
            id=self.db.generate_id("user"),
            name=name,
            email=email.strip().lower(),
            profile_picture=None,
            provider=provider,
            created_at=now,
            updated_at=now
        )
        self.db.users.insert(user.model_dump())
        self.rbac.initialize_user(user.id)
        logger.info(f"User created: {user.id}")
        return user

    def signup(self, name: str, email: str, password: str) -> User:
        with self.db.lock:
            if self.find_user_by_email(email):
                raise EmailAlreadyRegistered(email)
            return self._create_user(name.strip(), email)

    def login(self, email: str, password: str = "") -> User:
        with self.db.lock:
            user = self.find_user_by_email(email)
            if user:
                return user
            if not settings.auto_register_on_login:
                raise UserNotFound("No account exists for this email")
            return self._create_user(email.split("@")[0], email)

    def social_login(self, provider: str) -> User:
        provider = provider.strip().lower()
        if not provider.isalnum():
            raise InvalidInput("Unknown login provider")

        name = f"{provider}User{random.randint(0, 999)}"
        email = f"{name.lower()}@example.com"
        with self.db.lock:
            user = self.find_user_by_email(email)
            if user:
                return user
            return self._create_user(name, email, provider=provider)

    def update_profile(self, user_id: str, data: UserUpdate) -> User:
        updates = data.model_dump(exclude_unset=True)
        updates = {k: v for k, v in updates.items() if v is not None or k == "profile_picture"}
        if not updates:
            raise InvalidInput("No updates provided")

        with self.db.lock:
            user = self.get_user(user_id)
            if "email" in updates:
                updates["email"] = updates["email"].strip().lower()
                other = self.find_user_by_email(updates["email"])
                if other and other.id != user_id:
                    raise EmailAlreadyRegistered(updates["email"])

            updates["updated_at"] = self.db.timestamp()
            user = user.model_copy(update=updates)
            self.db.users.update(user.model_dump(), Q.id == user_id)

            if "name" in updates or "email" in updates:
                self.vaults.sync_member_profile(user)

        logger.info(f"User updated: {user_id}")
        return user

    def delete_account(self, user_id: str) -> dict:
        """Delete a user, their role assignment and their vault memberships"""
        with self.db.lock:
            self.get_user(user_id)
            self.db.users.remove(Q.id == user_id)
            self.rbac.remove_user(user_id)
            cascade = self.vaults.remove_user_everywhere(user_id)

        logger.info(f"User deleted: {user_id}")
        return cascade


# Singleton instance
account_service = AccountService(db, rbac_service, vault_service)
