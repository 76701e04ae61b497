"""Account service tests"""

from unittest.mock import patch

import pytest

from legacy.errors import EmailAlreadyRegistered, InvalidInput, UserNotFound
from legacy.models.user import UserUpdate


class TestSignupAndLogin:
    """Test mocked authentication flows"""

    def test_signup_assigns_default_role(self, accounts, rbac):
        user = accounts.signup("Ada", "Ada@Example.com", "secret")
        assert user.id.startswith("user_")
        assert user.email == "ada@example.com"
        assert rbac.get_user_role_ids(user.id) == ["role_user"]

    def test_duplicate_signup(self, accounts):
        accounts.signup("Ada", "ada@example.com", "secret")
        with pytest.raises(EmailAlreadyRegistered):
            accounts.signup("Other Ada", "ADA@example.com", "secret")

    def test_login_existing_user(self, accounts):
        user = accounts.signup("Ada", "ada@example.com", "secret")
        assert accounts.login("ada@example.com", "whatever").id == user.id

    def test_login_auto_registers(self, accounts):
        user = accounts.login("newcomer@example.com")
        assert user.name == "newcomer"
        assert accounts.find_user_by_email("newcomer@example.com").id == user.id

    def test_login_without_auto_register(self, accounts):
        with patch("legacy.services.account_service.settings.auto_register_on_login", False):
            with pytest.raises(UserNotFound):
                accounts.login("stranger@example.com")

    def test_social_login(self, accounts):
        user = accounts.social_login("Google")
        assert user.provider == "google"
        assert user.name.startswith("googleUser")
        assert user.email.endswith("@example.com")

    def test_social_login_rejects_odd_provider(self, accounts):
        with pytest.raises(InvalidInput):
            accounts.social_login("../etc")


class TestProfile:
    """Test profile updates and account deletion"""

    def test_update_name(self, accounts, member):
        user = accounts.update_profile(member.id, UserUpdate(name="New Name"))
        assert user.name == "New Name"
        assert accounts.get_user(member.id).name == "New Name"

    def test_update_to_taken_email(self, accounts, owner, member):
        with pytest.raises(EmailAlreadyRegistered):
            accounts.update_profile(member.id, UserUpdate(email=owner.email))

    def test_empty_update(self, accounts, member):
        with pytest.raises(InvalidInput):
            accounts.update_profile(member.id, UserUpdate())

    def test_list_users_includes_roles(self, accounts, owner, member):
        users = accounts.list_users()
        assert {u["id"] for u in users} == {owner.id, member.id}
        assert all(u["role_ids"] == ["role_user"] for u in users)

    def test_delete_account_cascades(self, accounts, vaults, rbac, owner, vault):
        cascade = accounts.delete_account(owner.id)
        assert cascade["deleted"] == [vault.id]
        with pytest.raises(UserNotFound):
            accounts.get_user(owner.id)
        assert rbac._assignment_doc(owner.id) is None

    def test_delete_missing_account(self, accounts):
        with pytest.raises(UserNotFound):
            accounts.delete_account("user_ghost")
