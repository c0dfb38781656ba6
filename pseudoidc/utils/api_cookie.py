import json
from abc import ABC, abstractmethod
from typing import Any, Generic, Literal, TypeVar

from fastapi import Request, Response
from fastapi.security import APIKeyCookie
from pydantic import BaseModel, ValidationError

from pseudoidc.utils.crypto import AESCipher


class EncryptedAPIKeyCookie(APIKeyCookie):
    """
    A cookie whose value is encrypted with `AESCipher`.

    JSON object values are parsed back into a dictionary, anything else is
    returned as a string. Missing or tampered cookies read as `None`.
    """

    def __init__(self, secret: str, name: str, *args, **kwargs):
        kwargs.setdefault("auto_error", False)
        super().__init__(*args, **kwargs, name=name)
        self.name = name
        self.secret = secret

    async def __call__(self, request: Request) -> str | dict[str, Any] | None:  # type: ignore[override]
        encrypted_value = request.cookies.get(self.name)
        if not encrypted_value:
            return None
        cookie_value = self.cipher.decrypt(encrypted_value)
        if not cookie_value:
            return None
        try:
            parsed = json.loads(cookie_value)
        except json.JSONDecodeError:
            return cookie_value
        return parsed if isinstance(parsed, dict) else cookie_value

    def set_cookie(
        self,
        response: Response,
        value: str | dict[str, Any] = "",
        max_age: int | None = None,
        path: str = "/",
        secure: bool = False,
        httponly: bool = True,
        samesite: Literal["lax", "strict", "none"] | None = "lax",
    ):
        if isinstance(value, dict):
            value = json.dumps(value)
        response.set_cookie(
            key=self.name,
            value=self.cipher.encrypt(value),
            max_age=max_age,
            path=path,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        )

    def delete_cookie(self, response: Response, path: str = "/"):
        response.delete_cookie(key=self.name, path=path)

    @property
    def cipher(self):
        return AESCipher(self.secret)


TModel = TypeVar("TModel", bound=BaseModel)


class APIKeyCookieModel(EncryptedAPIKeyCookie, Generic[TModel], ABC):
    """
    `EncryptedAPIKeyCookie` whose JSON payload is validated into a Pydantic model.

    Plain string payloads and payloads failing validation read as `None`.
    """

    @property
    @abstractmethod
    def payload_model(self) -> type[TModel]:
        raise NotImplementedError

    async def __call__(self, request: Request) -> TModel | None:  # type: ignore[override]
        value = await super().__call__(request)
        if not isinstance(value, dict):
            return None
        try:
            return self.payload_model.model_validate(value)
        except ValidationError:
            return None

    def set_cookie(  # type: ignore[override]
        self,
        response: Response,
        value: str | dict[str, Any] | TModel = "",
        max_age: int | None = None,
        path: str = "/",
        secure: bool = False,
        httponly: bool = True,
        samesite: Literal["lax", "strict", "none"] | None = "lax",
    ):
        if isinstance(value, BaseModel):
            value = value.model_dump(mode="json")
        super().set_cookie(
            response=response,
            value=value,
            max_age=max_age,
            path=path,
            secure=secure,
            httponly=httponly,
            samesite=samesite,
        )
