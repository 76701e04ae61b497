"""
Domain errors raised by the service layer.

Each error carries a human-readable message and the HTTP status the API
answers with. Routes let these propagate; the handler in ``legacy.main``
renders them as ``{"detail": message}``.
"""


class LegacyError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


# Not found

class NotFound(LegacyError):
    status_code = 404


class UserNotFound(NotFound):
    pass


class RoleNotFound(NotFound):
    def __init__(self, role_id: str):
        super().__init__(f"Role with ID {role_id} not found")
        self.role_id = role_id


class VaultNotFound(NotFound):
    def __init__(self, vault_id: str):
        super().__init__(f"Vault with ID {vault_id} not found")
        self.vault_id = vault_id


class VaultMemberNotFound(NotFound):
    pass


class MemoryNotFound(NotFound):
    def __init__(self, memory_id: str):
        super().__init__(f"Memory with ID {memory_id} not found")
        self.memory_id = memory_id


class CommentNotFound(NotFound):
    pass


# Conflicts with current state

class Conflict(LegacyError):
    status_code = 409


class RoleAlreadyAssigned(Conflict):
    pass


class RoleNotAssigned(Conflict):
    pass


class LastRoleViolation(Conflict):
    def __init__(self, message: str = "Cannot remove the user's only role"):
        super().__init__(message)


class LastAdminViolation(Conflict):
    def __init__(self, message: str = "A vault must keep at least one admin"):
        super().__init__(message)


class VaultMemberAlreadyExists(Conflict):
    pass


class EmailAlreadyRegistered(Conflict):
    def __init__(self, email: str):
        super().__init__("User with this email already exists")
        self.email = email


class InvalidTransition(Conflict):
    def __init__(self, current: str, action: str):
        super().__init__(f"Cannot {action} a memory that is {current}")
        self.current = current
        self.action = action


class VersionConflict(Conflict):
    def __init__(self, expected: int, actual: int):
        super().__init__(
            f"Record was modified concurrently (expected version {expected}, found {actual})"
        )
        self.expected = expected
        self.actual = actual


# Authorization

class SystemRoleImmutable(LegacyError):
    status_code = 403


class PermissionDenied(LegacyError):
    status_code = 403


# Input and storage

class InvalidInput(LegacyError):
    status_code = 422


class DeserializationError(LegacyError):
    status_code = 500

    def __init__(self, collection: str, detail: str):
        super().__init__(f"Malformed record in '{collection}': {detail}")
        self.collection = collection
