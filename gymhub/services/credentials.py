# gymhub/services/credentials.py
from typing import Protocol


class CredentialProvider(Protocol):
    def get_token(self) -> str: ...

    def get_user_id(self) -> str: ...


class SessionCredentials:
    """
    Bearer token + user id of the logged in user.
    Empty strings mean unauthenticated.
    """

    def __init__(self, user_id: str = "", token: str = ""):
        self.user_id = user_id
        self.token = token

    def get_token(self) -> str:
        return self.token or ""

    def get_user_id(self) -> str:
        return self.user_id or ""

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id and self.token)

    def set(self, user_id: str, token: str) -> None:
        self.user_id = user_id
        self.token = token

    def clear(self) -> None:
        self.user_id = ""
        self.token = ""
