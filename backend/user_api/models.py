from typing import Any

from pydantic import BaseModel, ConfigDict, model_validator

NAME_MAX_LENGTH = 50
AGE_MIN = 20
AGE_MAX = 80


class UserPublic(BaseModel):
    """A row of the ``user`` table as returned by GET /user."""

    model_config = ConfigDict(strict=True)

    id: str
    name: str
    age: int


class UserCreate(BaseModel):
    """
    Body of POST /user.

    Missing or null fields decode to their zero value (a null body to an empty
    object) and are rejected by validation afterwards, so only malformed JSON or
    wrongly-typed values fail decoding. Keys match case-insensitively, a later
    key overriding an earlier one. Any ``id`` sent by the client is ignored.
    """

    model_config = ConfigDict(strict=True, extra="ignore")

    name: str = ""
    age: int = 0

    @model_validator(mode="before")
    @classmethod
    def _fold_keys_and_nulls(cls, data: Any) -> Any:
        if data is None:
            return {}
        if not isinstance(data, dict):
            return data
        folded: dict[str, Any] = {}
        for key, value in data.items():
            field = key.lower()
            if field in cls.model_fields and value is not None:
                folded[field] = value
        return folded

    def name_is_valid(self) -> bool:
        return 0 < len(self.name) <= NAME_MAX_LENGTH

    def age_is_valid(self) -> bool:
        return AGE_MIN <= self.age <= AGE_MAX
